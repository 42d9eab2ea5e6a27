# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ..errors import ValidationError
from ..extensions import db
from ..models import CashAccountMovement, CashRegisterSession, Payment, RegisterTransaction, Sale, SaleItem
from ..money import ZERO, HUNDRED, money_str, round_money
from ..time_utils import day_range

UNCATEGORIZED = "Uncategorized"


def _accumulate(bucket: dict, key: str, amount: Decimal) -> None:
    bucket[key] = round_money(bucket.get(key, ZERO) + amount)


def profit_and_loss(*, tenant_id: int, date_from: date, date_to: date) -> dict:
    """
    Profit and loss for a window of calendar days (both inclusive).

    Revenue comes from the tenders of COMPLETED sales, COGS from the cost
    snapshots frozen on sale lines (lines without a snapshot are skipped),
    expenses from drawer EXPENSE transactions and treasury PAID movements.
    """
    if date_to < date_from:
        raise ValidationError("'from' must not be after 'to'", {"field": "from"})
    start, end = day_range(date_from, date_to)

    by_method: dict[str, Decimal] = {}
    revenue = ZERO
    payments = (
        db.session.query(Payment.method, Payment.amount)
        .join(Sale, Sale.id == Payment.sale_id)
        .filter(
            Sale.tenant_id == tenant_id,
            Sale.status == "COMPLETED",
            Sale.created_at >= start,
            Sale.created_at < end,
        )
        .all()
    )
    for method, amount in payments:
        _accumulate(by_method, method, amount)
        revenue += amount

    cogs = ZERO
    lines = (
        db.session.query(SaleItem.quantity, SaleItem.cost_price)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(
            Sale.tenant_id == tenant_id,
            Sale.status == "COMPLETED",
            Sale.created_at >= start,
            Sale.created_at < end,
            SaleItem.cost_price.isnot(None),
        )
        .all()
    )
    for quantity, cost_price in lines:
        cogs += cost_price * quantity

    revenue = round_money(revenue)
    cogs = round_money(cogs)
    gross_profit = revenue - cogs
    gross_margin = round_money(gross_profit / revenue * HUNDRED) if revenue > 0 else ZERO

    by_category: dict[str, Decimal] = {}
    by_source: dict[str, Decimal] = {"register": ZERO, "treasury": ZERO}

    drawer_expenses = (
        db.session.query(RegisterTransaction.category, RegisterTransaction.amount)
        .join(CashRegisterSession, CashRegisterSession.id == RegisterTransaction.session_id)
        .filter(
            CashRegisterSession.tenant_id == tenant_id,
            RegisterTransaction.transaction_type == "EXPENSE",
            RegisterTransaction.created_at >= start,
            RegisterTransaction.created_at < end,
        )
        .all()
    )
    for category, amount in drawer_expenses:
        _accumulate(by_category, category or UNCATEGORIZED, amount)
        _accumulate(by_source, "register", amount)

    treasury_paid = (
        db.session.query(CashAccountMovement.amount)
        .filter(
            CashAccountMovement.tenant_id == tenant_id,
            CashAccountMovement.movement_type == "PAID",
            CashAccountMovement.created_at >= start,
            CashAccountMovement.created_at < end,
        )
        .all()
    )
    for (amount,) in treasury_paid:
        _accumulate(by_category, UNCATEGORIZED, amount)
        _accumulate(by_source, "treasury", amount)

    expenses_total = round_money(sum(by_source.values(), ZERO))

    return {
        "period": {"from": date_from.isoformat(), "to": date_to.isoformat()},
        "revenue": {
            "gross": money_str(revenue),
            "by_payment_method": {method: money_str(amount) for method, amount in sorted(by_method.items())},
        },
        "cogs": money_str(cogs),
        "gross_profit": money_str(gross_profit),
        "gross_margin": money_str(gross_margin),
        "expenses": {
            "total": money_str(expenses_total),
            "by_source": {source: money_str(amount) for source, amount in by_source.items()},
            "by_category": [
                {"category": name, "amount": money_str(amount)}
                for name, amount in sorted(by_category.items())
            ],
        },
        "net_profit": money_str(gross_profit - expenses_total),
    }
