"""
Sales Service - sale posting core

WHY: A sale touches three ledgers at once (stock, customer accounts,
treasury). post_sale writes all of them plus the Sale itself in one
database transaction, so a failure anywhere leaves no trace: no partial
stock decrement, no orphan ledger entry, no consumed sale number.

PRICING RULES:
- Unit prices are tax-inclusive. Line tax is extracted, never added:
  tax = total * r / (100 + r), net = total - tax.
- The cart discount applies to the tax-inclusive sum of the lines. Tax is
  then scaled by grossTotal / grossBeforeDiscount and the stored subtotal
  is grossTotal - adjustedTax, so subtotal + tax == total exactly.
- Payments must sum to the total within 0.01.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import exists

from ..errors import (
    CustomerRequired,
    NoOpenRegister,
    NoPaymentMethod,
    NotFound,
    PaymentsMismatch,
    ValidationError,
)
from ..extensions import db
from ..models import Payment, Sale, SaleItem
from ..money import ZERO, PAYMENT_TOLERANCE, round_money
from ..time_utils import day_range
from .cash_account_service import post_sale_income
from .catalog_service import cost_snapshot, item_label, resolve_item
from .concurrency import apply_transaction_timeout
from .customer_account_service import charge, get_customer
from .document_service import next_document_number
from .pricing_service import calculate_discount_amount, extract_tax
from .register_service import get_session, resolve_location_id, resolve_open_session
from .sale_schemas import TREASURY_METHODS, CartItem, Discount, PaymentEntry, SaleRequest
from .stock_service import check_and_reserve, check_available

logger = logging.getLogger(__name__)

DEFAULT_SALE_PREFIX = "SALE"


@dataclass(frozen=True)
class SaleContext:
    """Who is selling, for which tenant, and from where (None = default location)."""
    tenant_id: int
    operator_id: int
    location_id: int | None = None


@dataclass(frozen=True)
class LinePricing:
    gross: Decimal
    discount_amount: Decimal
    total: Decimal
    subtotal: Decimal
    tax_amount: Decimal


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal


# =============================================================================
# PRICING (pure)
# =============================================================================

def price_line(item: CartItem) -> LinePricing:
    """Apply the line discount, then split the tax-inclusive total into net and tax."""
    gross = round_money(item.unit_price * item.quantity)
    discount_amount = ZERO
    if item.discount is not None:
        discount_amount = calculate_discount_amount(gross, item.discount.discount_type, item.discount.value)
    total = round_money(gross - discount_amount)
    subtotal, tax_amount = extract_tax(total, item.tax_rate)
    return LinePricing(
        gross=gross,
        discount_amount=discount_amount,
        total=total,
        subtotal=subtotal,
        tax_amount=tax_amount,
    )


def price_cart(lines: list[LinePricing], cart_discount: Discount = None) -> CartTotals:
    """Apply the cart discount and rescale tax proportionally."""
    subtotal = sum((line.subtotal for line in lines), ZERO)
    tax_amount = sum((line.tax_amount for line in lines), ZERO)
    gross_before_discount = subtotal + tax_amount

    discount_amount = ZERO
    if cart_discount is not None:
        discount_amount = calculate_discount_amount(
            gross_before_discount, cart_discount.discount_type, cart_discount.value
        )
    total = round_money(gross_before_discount - discount_amount)

    ratio = total / gross_before_discount if gross_before_discount > 0 else Decimal(1)
    adjusted_tax = round_money(tax_amount * ratio)
    return CartTotals(
        subtotal=round_money(total - adjusted_tax),
        tax_amount=adjusted_tax,
        discount_amount=discount_amount,
        total=total,
    )


def resolve_payments(request: SaleRequest, total: Decimal) -> list[PaymentEntry]:
    """
    Explicit tenders, or the legacy single method wrapped for the full total.

    A legacy sale that totals 0.00 carries no tender at all. Explicit
    tenders must each be at least one cent once rounded.
    """
    if request.payments is not None:
        for index, entry in enumerate(request.payments):
            if round_money(entry.amount) <= 0:
                raise ValidationError("amount must be positive", {"field": f"payments[{index}].amount"})
        return list(request.payments)
    if request.legacy_payment_method:
        if total <= 0:
            return []
        return [PaymentEntry(method=request.legacy_payment_method, amount=total)]
    raise NoPaymentMethod()


# =============================================================================
# POSTING
# =============================================================================

def _prevalidate(context: SaleContext, request: SaleRequest) -> None:
    if request.payments is None and not request.legacy_payment_method:
        raise NoPaymentMethod()
    if request.uses_account() and request.customer_id is None:
        raise CustomerRequired()
    if request.customer_id is not None:
        get_customer(context.tenant_id, request.customer_id)


def post_sale(
    context: SaleContext,
    request: SaleRequest,
    *,
    prefix: str = DEFAULT_SALE_PREFIX,
    timeout_seconds: int | None = None,
) -> Sale:
    """
    Post a complete sale atomically.

    Order of work (a failure at any step rolls back everything):
    1. resolve location and lock the OPEN register session
    2-3. tender presence, customer for ACCOUNT tenders
    4. allocate the sale number
    5. load products/variants, check stock, price lines
    6. cart discount and proportional tax
    7. payments must equal the total (0.01 tolerance)
    8. insert Sale, SaleItems, Payments
    9. decrement stock + SALE movements
    10. charge ACCOUNT tenders to the customer account
    11. credit non-cash tenders to their mapped treasury accounts

    Raises a SaleError subclass for every business-rule failure.
    """
    tenant_id = context.tenant_id
    try:
        location_id = resolve_location_id(tenant_id, context.location_id)
        session = resolve_open_session(tenant_id, location_id)
        # Hold the session row so a concurrent close waits for this sale.
        session = get_session(tenant_id, session.id, lock=True)
        if session.status != "OPEN":
            raise NoOpenRegister()
        location_id = session.location_id

        _prevalidate(context, request)

        apply_transaction_timeout(timeout_seconds)

        sale_number = next_document_number(tenant_id=tenant_id, prefix=prefix)

        # Stock is checked against the total requested per item, so two
        # lines of the same item cannot each pass against the same units.
        requested: dict = defaultdict(int)
        priced = []
        for item in request.items:
            product, variant = resolve_item(tenant_id, item.item_ref)
            label = item_label(product, variant)
            requested[item.item_ref] += item.quantity
            check_available(
                tenant_id=tenant_id,
                location_id=location_id,
                item_ref=item.item_ref,
                quantity=requested[item.item_ref],
                label=label,
            )
            priced.append((item, label, cost_snapshot(product, variant), price_line(item)))

        totals = price_cart([pricing for _, _, _, pricing in priced], request.cart_discount)

        payments = resolve_payments(request, totals.total)
        paid = sum((p.amount for p in payments), ZERO)
        if abs(paid - totals.total) > PAYMENT_TOLERANCE:
            raise PaymentsMismatch(round_money(paid), totals.total)

        cart_discount = request.cart_discount
        sale = Sale(
            tenant_id=tenant_id,
            location_id=location_id,
            user_id=context.operator_id,
            customer_id=request.customer_id,
            register_session_id=session.id,
            sale_number=sale_number,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            discount_type=cart_discount.discount_type if cart_discount else None,
            discount_value=cart_discount.value if cart_discount else None,
            discount_amount=totals.discount_amount,
            total=totals.total,
            status="COMPLETED",
        )
        db.session.add(sale)
        db.session.flush()

        for item, label, cost_price, pricing in priced:
            db.session.add(SaleItem(
                sale_id=sale.id,
                description=label,
                quantity=item.quantity,
                unit_price=round_money(item.unit_price),
                cost_price=cost_price,
                tax_rate=item.tax_rate,
                discount_type=item.discount.discount_type if item.discount else None,
                discount_value=item.discount.value if item.discount else None,
                discount_amount=pricing.discount_amount,
                subtotal=pricing.subtotal,
                tax_amount=pricing.tax_amount,
                total=pricing.total,
                **item.item_ref.columns(),
            ))
        for entry in payments:
            db.session.add(Payment(
                tenant_id=tenant_id,
                sale_id=sale.id,
                method=entry.method,
                amount=round_money(entry.amount),
                reference=entry.reference,
            ))

        for item, label, _, _ in priced:
            check_and_reserve(
                tenant_id=tenant_id,
                location_id=location_id,
                item_ref=item.item_ref,
                quantity=item.quantity,
                label=label,
                reason=f"Sale {sale_number}",
                sale_id=sale.id,
                user_id=context.operator_id,
            )

        account_total = sum((p.amount for p in payments if p.method == "ACCOUNT"), ZERO)
        if account_total > 0:
            charge(
                tenant_id=tenant_id,
                customer_id=request.customer_id,
                amount=account_total,
                concept=f"Sale {sale_number}",
                sale_id=sale.id,
                user_id=context.operator_id,
            )

        for entry in payments:
            if entry.method in TREASURY_METHODS:
                post_sale_income(
                    tenant_id=tenant_id,
                    payment_method=entry.method,
                    amount=entry.amount,
                    concept=f"Sale {sale_number} - {entry.method}",
                    reference=entry.reference,
                    sale_id=sale.id,
                    user_id=context.operator_id,
                )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Posted sale %s: total %s, %d item(s), %d tender(s)",
        sale.sale_number, sale.total, len(request.items), len(payments),
    )
    return sale


# =============================================================================
# READ SIDE
# =============================================================================

def get_sale(tenant_id: int, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id).first()
    if sale is None:
        raise NotFound("Sale not found", {"sale_id": sale_id})
    return sale


def list_sales(
    tenant_id: int,
    *,
    location_id: int | None = None,
    session_id: int | None = None,
    search: str | None = None,
    date_from=None,
    date_to=None,
    payment_method: str | None = None,
    status: str | None = None,
    limit: int = 50,
) -> list[Sale]:
    """Newest first. date_from/date_to are calendar days, both inclusive."""
    query = db.session.query(Sale).filter(Sale.tenant_id == tenant_id)
    if location_id is not None:
        query = query.filter(Sale.location_id == location_id)
    if session_id is not None:
        query = query.filter(Sale.register_session_id == session_id)
    if search:
        query = query.filter(Sale.sale_number.ilike(f"%{search}%"))
    if date_from is not None or date_to is not None:
        start, end = day_range(date_from or date_to, date_to or date_from)
        if date_from is not None:
            query = query.filter(Sale.created_at >= start)
        if date_to is not None:
            query = query.filter(Sale.created_at < end)
    if payment_method:
        query = query.filter(
            exists().where(Payment.sale_id == Sale.id, Payment.method == payment_method)
        )
    if status:
        query = query.filter(Sale.status == status)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
