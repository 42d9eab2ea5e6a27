# Overview: Pure pricing helpers for margins, price rounding, discounts, and tax extraction.

"""
Pricing Engine

WHY: Sale posting, catalog price maintenance and reporting must agree on
margin and discount arithmetic to the cent. Everything here is pure Decimal
math with no database access.

ROUNDING:
- Monetary and percentage outputs are rounded half-up to 2 places.
- roundPrice strategies round UP (ceiling) to the next multiple of the step,
  so a rounded shelf price never drops below the computed one.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_CEILING

from ..money import ZERO, HUNDRED, to_decimal, round_money

DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_FIXED = "FIXED"
DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)

ROUNDING_STEPS = {
    "none": None,
    "nearestFive": Decimal("5"),
    "nearestTen": Decimal("10"),
    "nearestFifty": Decimal("50"),
    "nearestHundred": Decimal("100"),
}


class PricingError(ValueError):
    """Raised for unknown discount types or rounding strategies."""
    pass


# =============================================================================
# MARGINS
# =============================================================================

def calculate_margin(cost_price, sale_price) -> Decimal:
    """Margin over cost: (sale - cost) / cost * 100. 0 when cost <= 0."""
    cost = to_decimal(cost_price)
    sale = to_decimal(sale_price)
    if cost <= 0:
        return ZERO
    return round_money((sale - cost) / cost * HUNDRED)


def calculate_sale_price(cost_price, margin) -> Decimal:
    """cost * (1 + margin/100). 0 when cost <= 0."""
    cost = to_decimal(cost_price)
    if cost <= 0:
        return ZERO
    return round_money(cost * (1 + to_decimal(margin) / HUNDRED))


def calculate_cost_price(sale_price, margin) -> Decimal:
    """sale / (1 + margin/100). 0 when sale <= 0 or margin <= -100."""
    sale = to_decimal(sale_price)
    margin = to_decimal(margin)
    if sale <= 0 or margin <= -HUNDRED:
        return ZERO
    return round_money(sale / (1 + margin / HUNDRED))


def calculate_sale_price_with_tax(cost_price, tax_rate, margin) -> Decimal:
    """cost * (1 + tax/100) * (1 + margin/100). 0 when cost <= 0."""
    cost = to_decimal(cost_price)
    if cost <= 0:
        return ZERO
    with_tax = cost * (1 + to_decimal(tax_rate) / HUNDRED)
    return round_money(with_tax * (1 + to_decimal(margin) / HUNDRED))


def calculate_margin_with_tax(cost_price, tax_rate, sale_price) -> Decimal:
    """Margin over cost-plus-tax: (sale / (cost * (1 + tax/100)) - 1) * 100."""
    cost = to_decimal(cost_price)
    if cost <= 0:
        return ZERO
    with_tax = cost * (1 + to_decimal(tax_rate) / HUNDRED)
    if with_tax <= 0:
        return ZERO
    return round_money((to_decimal(sale_price) / with_tax - 1) * HUNDRED)


def validate_prices(cost_price, sale_price, margin) -> list[str]:
    """Return a list of human-readable problems (empty when valid)."""
    errors = []
    if to_decimal(cost_price) < 0:
        errors.append("Cost price cannot be negative")
    if to_decimal(sale_price) < 0:
        errors.append("Sale price cannot be negative")
    if to_decimal(margin) < -HUNDRED:
        errors.append("Margin cannot be lower than -100%")
    return errors


# =============================================================================
# ROUNDING
# =============================================================================

def round_price(value, strategy: str = "none") -> Decimal:
    """
    Round a price up to the strategy's step.

    121 -> 125 (nearestFive), 125 stays 125, 126 -> 130 (nearestTen),
    151 -> 200 (nearestHundred).
    """
    if strategy not in ROUNDING_STEPS:
        raise PricingError(f"Unknown rounding strategy: {strategy}")
    price = to_decimal(value)
    step = ROUNDING_STEPS[strategy]
    if step is None:
        return round_money(price)
    multiples = (price / step).to_integral_value(rounding=ROUND_CEILING)
    return round_money(multiples * step)


def round_sale_price_and_recalculate_margin(cost_price, sale_price, strategy: str) -> dict:
    """Round the sale price and return the margin the rounded price yields."""
    rounded = round_price(sale_price, strategy)
    return {
        "cost_price": round_money(cost_price),
        "sale_price": rounded,
        "margin": calculate_margin(cost_price, rounded),
    }


# =============================================================================
# DISCOUNTS
# =============================================================================

def _raw_discount(base: Decimal, discount_type: str, value: Decimal) -> Decimal:
    if discount_type not in DISCOUNT_TYPES:
        raise PricingError(f"Unknown discount type: {discount_type}")
    if value <= 0 or base <= 0:
        return ZERO
    if discount_type == DISCOUNT_PERCENTAGE:
        return min(base * value / HUNDRED, base)
    return min(value, base)


def calculate_discount_amount(base_amount, discount_type: str, discount_value) -> Decimal:
    """
    Discount amount for a base.

    PERCENTAGE: base * value / 100. FIXED: min(value, base).
    Never negative and never more than the base; 0 when base <= 0.
    """
    base = to_decimal(base_amount)
    return round_money(_raw_discount(base, discount_type, to_decimal(discount_value)))


def apply_discount(price, discount_type: str, discount_value) -> Decimal:
    """Price after discount, never below zero."""
    price = to_decimal(price)
    discounted = price - _raw_discount(price, discount_type, to_decimal(discount_value))
    return max(ZERO, round_money(discounted))


def calculate_discount_percentage(original_price, discount_amount) -> Decimal:
    """Express a discount amount as a percentage of the original price."""
    original = to_decimal(original_price)
    discount = to_decimal(discount_amount)
    if original <= 0 or discount <= 0:
        return ZERO
    return round_money(discount / original * HUNDRED)


# =============================================================================
# TAX (prices are tax-inclusive)
# =============================================================================

def extract_tax(gross_total, tax_rate) -> tuple[Decimal, Decimal]:
    """
    Split a tax-inclusive total into (net, tax).

    tax = total * r / (100 + r), net = total - tax, so net + tax == total.
    """
    total = to_decimal(gross_total)
    rate = to_decimal(tax_rate)
    tax = round_money(total * rate / (HUNDRED + rate))
    return round_money(total - tax), tax
