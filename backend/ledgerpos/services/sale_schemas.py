# Overview: Parses sale posting payloads into typed cart, discount, and tender values.

"""
Sale input parsing.

The HTTP payload accepts two generations of fields:
- item `discount` (legacy percentage) vs `discountType` + `discountValue`
- cart `discountAmount` (legacy fixed amount) vs `discountType` + `discountValue`
- `paymentMethod` (legacy single tender) vs a `payments` list

Both generations are translated here into one representation (Discount,
ItemRef, PaymentEntry) so the posting core never looks at raw fields. The
newer pair wins when both are present. Keys are accepted in snake_case or
camelCase.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

from ..errors import ValidationError
from ..money import ZERO, HUNDRED, round_money, to_decimal
from .pricing_service import DISCOUNT_FIXED, DISCOUNT_PERCENTAGE, DISCOUNT_TYPES

PAYMENT_METHODS = (
    "CASH",
    "DEBIT_CARD",
    "CREDIT_CARD",
    "TRANSFER",
    "QR",
    "CHECK",
    "ACCOUNT",
    "OTHER",
)

# Tenders whose proceeds land in a treasury account at sale time.
# CASH stays in the drawer until the register session is closed.
TREASURY_METHODS = ("DEBIT_CARD", "CREDIT_CARD", "QR", "TRANSFER", "CHECK")


# =============================================================================
# DISCOUNTS
# =============================================================================

@dataclass(frozen=True)
class PercentageDiscount:
    value: Decimal

    @property
    def discount_type(self) -> str:
        return DISCOUNT_PERCENTAGE


@dataclass(frozen=True)
class FixedDiscount:
    value: Decimal

    @property
    def discount_type(self) -> str:
        return DISCOUNT_FIXED


Discount = Union[PercentageDiscount, FixedDiscount, None]


def make_discount(discount_type: str, value) -> Discount:
    value = to_decimal(value)
    if discount_type == DISCOUNT_PERCENTAGE:
        return PercentageDiscount(value)
    if discount_type == DISCOUNT_FIXED:
        return FixedDiscount(value)
    raise ValidationError(f"Unknown discount type: {discount_type}", {"field": "discount_type"})


# =============================================================================
# ITEM REFERENCES
# =============================================================================

@dataclass(frozen=True)
class ProductRef:
    """A plain product (no variant)."""
    product_id: int

    @property
    def key(self) -> str:
        return f"P:{self.product_id}"

    def columns(self) -> dict:
        return {"product_id": self.product_id, "product_variant_id": None}


@dataclass(frozen=True)
class VariantRef:
    """A product variant. Stock and movements are keyed by the variant only."""
    product_id: int
    variant_id: int

    @property
    def key(self) -> str:
        return f"V:{self.variant_id}"

    def columns(self) -> dict:
        return {"product_id": None, "product_variant_id": self.variant_id}


ItemRef = Union[ProductRef, VariantRef]


def make_item_ref(product_id, variant_id=None) -> ItemRef:
    product_id = _require_int(product_id, "product_id")
    if variant_id is None or variant_id == "":
        return ProductRef(product_id)
    return VariantRef(product_id, _require_int(variant_id, "product_variant_id"))


# =============================================================================
# REQUEST VALUES
# =============================================================================

@dataclass(frozen=True)
class CartItem:
    item_ref: ItemRef
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal
    discount: Discount = None


@dataclass(frozen=True)
class PaymentEntry:
    method: str
    amount: Decimal
    reference: str | None = None


@dataclass
class SaleRequest:
    items: list[CartItem]
    payments: list[PaymentEntry] | None = None
    legacy_payment_method: str | None = None
    customer_id: int | None = None
    cart_discount: Discount = None

    def uses_account(self) -> bool:
        if self.payments is not None:
            return any(p.method == "ACCOUNT" for p in self.payments)
        return self.legacy_payment_method == "ACCOUNT"


# =============================================================================
# PARSING
# =============================================================================

def _get(data: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _require_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer", {"field": field_name})
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field_name} must be an integer", {"field": field_name})


def _require_decimal(value: Any, field_name: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as exc:
        raise ValidationError(f"{field_name} must be a number", {"field": field_name}) from exc


def _optional_discount_type(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if value not in DISCOUNT_TYPES:
        raise ValidationError(
            f"{field_name} must be one of {', '.join(DISCOUNT_TYPES)}",
            {"field": field_name},
        )
    return value


def _parse_item(raw: Any, index: int) -> CartItem:
    if not isinstance(raw, dict):
        raise ValidationError("Each item must be an object", {"field": f"items[{index}]"})

    prefix = f"items[{index}]"
    product_id = _get(raw, "product_id", "productId")
    if product_id is None:
        raise ValidationError("product_id is required", {"field": f"{prefix}.product_id"})
    item_ref = make_item_ref(product_id, _get(raw, "product_variant_id", "productVariantId", "variant_id", "variantId"))

    quantity = _require_int(_get(raw, "quantity"), f"{prefix}.quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be positive", {"field": f"{prefix}.quantity"})

    unit_price = _require_decimal(_get(raw, "unit_price", "unitPrice"), f"{prefix}.unit_price")
    if unit_price <= 0:
        raise ValidationError("unit_price must be positive", {"field": f"{prefix}.unit_price"})

    tax_rate = _require_decimal(_get(raw, "tax_rate", "taxRate"), f"{prefix}.tax_rate")
    if tax_rate < 0 or tax_rate > HUNDRED:
        raise ValidationError("tax_rate must be between 0 and 100", {"field": f"{prefix}.tax_rate"})

    legacy_percent = _require_decimal(_get(raw, "discount", default=0), f"{prefix}.discount")
    if legacy_percent < 0 or legacy_percent > HUNDRED:
        raise ValidationError("discount must be between 0 and 100", {"field": f"{prefix}.discount"})

    discount_type = _optional_discount_type(_get(raw, "discount_type", "discountType"), f"{prefix}.discount_type")
    discount_value = _get(raw, "discount_value", "discountValue")

    discount: Discount = None
    if discount_type and discount_value is not None:
        value = _require_decimal(discount_value, f"{prefix}.discount_value")
        if value < 0:
            raise ValidationError("discount_value cannot be negative", {"field": f"{prefix}.discount_value"})
        discount = make_discount(discount_type, value)
    elif legacy_percent > 0:
        discount = PercentageDiscount(legacy_percent)

    return CartItem(
        item_ref=item_ref,
        quantity=quantity,
        unit_price=unit_price,
        tax_rate=tax_rate,
        discount=discount,
    )


def _parse_payment(raw: Any, index: int) -> PaymentEntry:
    if not isinstance(raw, dict):
        raise ValidationError("Each payment must be an object", {"field": f"payments[{index}]"})

    prefix = f"payments[{index}]"
    method = _get(raw, "method")
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {method}", {"field": f"{prefix}.method"})

    amount = _require_decimal(_get(raw, "amount"), f"{prefix}.amount")
    if round_money(amount) <= 0:
        raise ValidationError("amount must be positive", {"field": f"{prefix}.amount"})

    card_last_four = _get(raw, "card_last_four", "cardLastFour")
    transfer_reference = _get(raw, "transfer_reference", "transferReference")
    reference = None
    if card_last_four:
        reference = f"card:{card_last_four}"
    elif transfer_reference:
        reference = f"ref:{transfer_reference}"

    return PaymentEntry(method=method, amount=amount, reference=reference)


def parse_sale_request(data: dict | None) -> SaleRequest:
    """
    Validate a sale payload and translate it into a SaleRequest.

    Raises ValidationError before any transaction is opened. A missing tender
    is not a shape error here; post_sale reports it as NoPaymentMethod.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    raw_items = _get(data, "items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required", {"field": "items"})
    items = [_parse_item(raw, i) for i, raw in enumerate(raw_items)]

    payments = None
    raw_payments = _get(data, "payments")
    if raw_payments is not None:
        if not isinstance(raw_payments, list) or not raw_payments:
            raise ValidationError("payments must be a non-empty list", {"field": "payments"})
        payments = [_parse_payment(raw, i) for i, raw in enumerate(raw_payments)]

    legacy_method = _get(data, "payment_method", "paymentMethod")
    if legacy_method is not None and legacy_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {legacy_method}", {"field": "payment_method"})

    customer_id = _get(data, "customer_id", "customerId")
    if customer_id is not None:
        customer_id = _require_int(customer_id, "customer_id")

    discount_type = _optional_discount_type(_get(data, "discount_type", "discountType"), "discount_type")
    discount_value = _get(data, "discount_value", "discountValue")
    legacy_amount = _require_decimal(_get(data, "discount_amount", "discountAmount", default=0), "discount_amount")
    if legacy_amount < 0:
        raise ValidationError("discount_amount cannot be negative", {"field": "discount_amount"})

    cart_discount: Discount = None
    if discount_type and discount_value is not None:
        value = _require_decimal(discount_value, "discount_value")
        if value < 0:
            raise ValidationError("discount_value cannot be negative", {"field": "discount_value"})
        cart_discount = make_discount(discount_type, value)
    elif legacy_amount > ZERO:
        cart_discount = FixedDiscount(legacy_amount)

    return SaleRequest(
        items=items,
        payments=payments,
        legacy_payment_method=legacy_method,
        customer_id=customer_id,
        cart_discount=cart_discount,
    )
