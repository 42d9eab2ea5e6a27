# Overview: Service-layer operations for customer accounts receivable; encapsulates business logic and database work.

"""
Customer Accounts (cuenta corriente)

Sign convention: balance > 0 means the customer has credit with the
business, balance < 0 means the customer owes. A CHARGE lowers the
balance, a PAYMENT raises it, an ADJUSTMENT moves it either way.

credit_limit caps how far below zero a CHARGE may take the balance
(0 = unlimited). Every change appends a CustomerAccountMovement carrying
the balance before and after, in the same transaction as the balance update.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..errors import AccountInactive, CreditLimitExceeded, CustomerNotFound, ValidationError
from ..extensions import db
from ..models import Customer, CustomerAccount, CustomerAccountMovement
from ..money import ZERO, money_str, round_money, to_decimal
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


def get_customer(tenant_id: int, customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id, tenant_id=tenant_id).first()
    if customer is None:
        raise CustomerNotFound(customer_id)
    return customer


def get_or_create_account(tenant_id: int, customer_id: int, *, lock: bool = False) -> CustomerAccount:
    """
    Return the customer's account, creating an empty one on first use.

    Does not commit. With lock=True the row is held FOR UPDATE until the
    caller's transaction ends.
    """
    get_customer(tenant_id, customer_id)
    query = db.session.query(CustomerAccount).filter_by(customer_id=customer_id, tenant_id=tenant_id)
    if lock:
        query = lock_for_update(query)
    account = query.first()
    if account is None:
        account = CustomerAccount(
            tenant_id=tenant_id,
            customer_id=customer_id,
            balance=ZERO,
            credit_limit=ZERO,
            is_active=True,
        )
        db.session.add(account)
        db.session.flush()
    return account


def available_credit(account: CustomerAccount) -> Decimal | None:
    """Credit left before the limit is hit; None when the limit is unlimited."""
    limit = to_decimal(account.credit_limit)
    if limit <= 0:
        return None
    return round_money(limit + to_decimal(account.balance))


def _append(
    account: CustomerAccount,
    *,
    movement_type: str,
    amount: Decimal,
    delta: Decimal,
    concept: str,
    reference: str | None = None,
    sale_id: int | None = None,
    user_id: int | None = None,
) -> CustomerAccountMovement:
    balance_before = round_money(account.balance)
    balance_after = round_money(balance_before + delta)
    account.balance = balance_after
    movement = CustomerAccountMovement(
        tenant_id=account.tenant_id,
        customer_account_id=account.id,
        movement_type=movement_type,
        amount=amount,
        concept=concept,
        reference=reference,
        balance_before=balance_before,
        balance_after=balance_after,
        sale_id=sale_id,
        user_id=user_id,
    )
    db.session.add(movement)
    return movement


def charge(
    *,
    tenant_id: int,
    customer_id: int,
    amount,
    concept: str,
    sale_id: int | None = None,
    user_id: int | None = None,
) -> CustomerAccountMovement:
    """
    Charge a sale to the customer's account (CHARGE lowers the balance).

    Runs inside the caller's transaction; does not commit.

    Raises:
        AccountInactive: the account was deactivated
        CreditLimitExceeded: the charge would take the balance below -credit_limit
    """
    amount = round_money(amount)
    account = get_or_create_account(tenant_id, customer_id, lock=True)
    if not account.is_active:
        raise AccountInactive()

    limit = to_decimal(account.credit_limit)
    if limit > 0:
        new_balance = to_decimal(account.balance) - amount
        if new_balance < -limit:
            available = available_credit(account)
            logger.info(
                "Credit limit exceeded for customer %s: requested %s, available %s",
                customer_id, amount, available,
            )
            raise CreditLimitExceeded(available, amount)

    return _append(
        account,
        movement_type="CHARGE",
        amount=amount,
        delta=-amount,
        concept=concept,
        sale_id=sale_id,
        user_id=user_id,
    )


def register_payment(
    *,
    tenant_id: int,
    customer_id: int,
    amount,
    concept: str = "Account payment",
    reference: str | None = None,
    user_id: int | None = None,
) -> CustomerAccountMovement:
    """Record money received from the customer (PAYMENT raises the balance)."""
    amount = round_money(amount)
    if amount <= 0:
        raise ValidationError("amount must be positive", {"field": "amount"})

    try:
        account = get_or_create_account(tenant_id, customer_id, lock=True)
        if not account.is_active:
            raise AccountInactive()
        movement = _append(
            account,
            movement_type="PAYMENT",
            amount=amount,
            delta=amount,
            concept=concept,
            reference=reference,
            user_id=user_id,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return movement


def adjust(
    *,
    tenant_id: int,
    customer_id: int,
    amount,
    concept: str,
    user_id: int | None = None,
) -> CustomerAccountMovement:
    """
    Manual correction. A positive amount credits the customer, a negative
    one debits. The movement stores the absolute amount; the sign is in
    balance_before/balance_after. Credit limits do not apply.
    """
    delta = round_money(amount)
    if delta == 0:
        raise ValidationError("Adjustment amount cannot be zero", {"field": "amount"})
    if not concept:
        raise ValidationError("concept is required", {"field": "concept"})

    try:
        account = get_or_create_account(tenant_id, customer_id, lock=True)
        movement = _append(
            account,
            movement_type="ADJUSTMENT",
            amount=abs(delta),
            delta=delta,
            concept=concept,
            user_id=user_id,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return movement


def update_account(
    *,
    tenant_id: int,
    customer_id: int,
    credit_limit=None,
    is_active: bool | None = None,
) -> CustomerAccount:
    """Change the credit limit and/or activation flag."""
    try:
        account = get_or_create_account(tenant_id, customer_id, lock=True)
        if credit_limit is not None:
            limit = round_money(credit_limit)
            if limit < 0:
                raise ValidationError("credit_limit cannot be negative", {"field": "credit_limit"})
            account.credit_limit = limit
        if is_active is not None:
            account.is_active = bool(is_active)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return account


def list_movements(tenant_id: int, customer_id: int, limit: int = 100) -> list[CustomerAccountMovement]:
    get_customer(tenant_id, customer_id)
    account = db.session.query(CustomerAccount).filter_by(customer_id=customer_id, tenant_id=tenant_id).first()
    if account is None:
        return []
    return (
        db.session.query(CustomerAccountMovement)
        .filter_by(customer_account_id=account.id)
        .order_by(CustomerAccountMovement.created_at.desc(), CustomerAccountMovement.id.desc())
        .limit(limit)
        .all()
    )


def account_summary(tenant_id: int, customer_id: int) -> dict:
    """Account state plus available credit. Creates the account on first read."""
    try:
        account = get_or_create_account(tenant_id, customer_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    summary = account.to_dict()
    summary["available_credit"] = money_str(available_credit(account))
    return summary
