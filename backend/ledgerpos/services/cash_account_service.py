# Overview: Service-layer operations for treasury cash accounts; encapsulates business logic and database work.

"""
Treasury (cash accounts)

Each CashAccount holds current_balance plus an append-only log of
CashAccountMovements with before/after snapshots. Balances only change
together with a movement insert, in one transaction, with the account row
locked.

Sale proceeds: non-cash tenders are posted at sale time as SALE_INCOME to
the account mapped for that payment method (PaymentMethodAccount). An
unmapped method posts nothing. Cash reaches treasury when the register
session closes; the opening float leaves it when the session opens.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..errors import InsufficientFunds, NotFound, SameAccountTransfer, ValidationError
from ..extensions import db
from ..models import CashAccount, CashAccountMovement, PaymentMethodAccount
from ..money import round_money
from .concurrency import lock_for_update
from .sale_schemas import PAYMENT_METHODS

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = ("CASH", "BANK", "OPERATIONAL")
MANUAL_MOVEMENT_TYPES = ("PAID", "RECEIVED")


def create_account(*, tenant_id: int, name: str, account_type: str = "BANK", opening_balance=0) -> CashAccount:
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError(f"Unknown account type: {account_type}", {"field": "account_type"})
    if not name:
        raise ValidationError("name is required", {"field": "name"})
    balance = round_money(opening_balance)
    if balance < 0:
        raise ValidationError("opening_balance cannot be negative", {"field": "opening_balance"})
    account = CashAccount(
        tenant_id=tenant_id,
        name=name,
        account_type=account_type,
        current_balance=balance,
        is_active=True,
    )
    db.session.add(account)
    db.session.commit()
    return account


def get_account(tenant_id: int, account_id: int, *, lock: bool = False, active_only: bool = False) -> CashAccount:
    query = db.session.query(CashAccount).filter_by(id=account_id, tenant_id=tenant_id)
    if active_only:
        query = query.filter_by(is_active=True)
    if lock:
        query = lock_for_update(query)
    account = query.first()
    if account is None:
        raise NotFound("Cash account not found", {"cash_account_id": account_id})
    return account


def list_accounts(tenant_id: int) -> list[CashAccount]:
    return db.session.query(CashAccount).filter_by(tenant_id=tenant_id).order_by(CashAccount.name).all()


def _post(
    account: CashAccount,
    *,
    movement_type: str,
    amount: Decimal,
    delta: Decimal,
    concept: str,
    reference: str | None = None,
    related_account_id: int | None = None,
    sale_id: int | None = None,
    register_session_id: int | None = None,
    user_id: int | None = None,
) -> CashAccountMovement:
    balance_before = round_money(account.current_balance)
    balance_after = round_money(balance_before + delta)
    account.current_balance = balance_after
    movement = CashAccountMovement(
        tenant_id=account.tenant_id,
        cash_account_id=account.id,
        movement_type=movement_type,
        amount=amount,
        concept=concept,
        reference=reference,
        balance_before=balance_before,
        balance_after=balance_after,
        related_account_id=related_account_id,
        sale_id=sale_id,
        register_session_id=register_session_id,
        user_id=user_id,
    )
    db.session.add(movement)
    return movement


# =============================================================================
# PAYMENT METHOD MAPPING
# =============================================================================

def set_payment_method_account(*, tenant_id: int, payment_method: str, cash_account_id: int) -> PaymentMethodAccount:
    """Route a payment method's proceeds to a treasury account (replaces any previous mapping)."""
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {payment_method}", {"field": "payment_method"})
    get_account(tenant_id, cash_account_id, active_only=True)

    mapping = db.session.query(PaymentMethodAccount).filter_by(
        tenant_id=tenant_id,
        payment_method=payment_method,
    ).first()
    if mapping is None:
        mapping = PaymentMethodAccount(tenant_id=tenant_id, payment_method=payment_method)
        db.session.add(mapping)
    mapping.cash_account_id = cash_account_id
    db.session.commit()
    return mapping


def mapped_account_id(tenant_id: int, payment_method: str) -> int | None:
    return db.session.query(PaymentMethodAccount.cash_account_id).filter_by(
        tenant_id=tenant_id,
        payment_method=payment_method,
    ).scalar()


def post_sale_income(
    *,
    tenant_id: int,
    payment_method: str,
    amount,
    concept: str,
    reference: str | None = None,
    sale_id: int | None = None,
    user_id: int | None = None,
) -> CashAccountMovement | None:
    """
    Credit a sale tender to the treasury account mapped for its method.

    Returns None (and posts nothing) when the method has no mapping.
    Runs inside the sale's transaction; does not commit.
    """
    account_id = mapped_account_id(tenant_id, payment_method)
    if account_id is None:
        return None
    account = get_account(tenant_id, account_id, lock=True)
    amount = round_money(amount)
    return _post(
        account,
        movement_type="SALE_INCOME",
        amount=amount,
        delta=amount,
        concept=concept,
        reference=reference,
        sale_id=sale_id,
        user_id=user_id,
    )


# =============================================================================
# MANUAL MOVEMENTS AND TRANSFERS
# =============================================================================

def record_manual_movement(
    *,
    tenant_id: int,
    account_id: int,
    movement_type: str,
    amount,
    concept: str,
    reference: str | None = None,
    user_id: int | None = None,
) -> CashAccountMovement:
    """
    PAID takes money out (never below zero), RECEIVED puts money in.
    """
    if movement_type not in MANUAL_MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type}", {"field": "type"})
    if not concept:
        raise ValidationError("concept is required", {"field": "concept"})
    amount = round_money(amount)
    if amount <= 0:
        raise ValidationError("amount must be positive", {"field": "amount"})

    try:
        account = get_account(tenant_id, account_id, lock=True)
        if movement_type == "PAID":
            balance = round_money(account.current_balance)
            if balance - amount < 0:
                raise InsufficientFunds(balance, amount)
            delta = -amount
        else:
            delta = amount
        movement = _post(
            account,
            movement_type=movement_type,
            amount=amount,
            delta=delta,
            concept=concept,
            reference=reference,
            user_id=user_id,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Cash account %s %s %s", account_id, movement_type, amount)
    return movement


def transfer(
    *,
    tenant_id: int,
    from_account_id: int,
    to_account_id: int,
    amount,
    concept: str,
    reference: str | None = None,
    user_id: int | None = None,
) -> tuple[CashAccountMovement, CashAccountMovement]:
    """
    Move money between two active accounts: TRANSFER_OUT on the source,
    TRANSFER_IN on the destination, each pointing at the other account.
    """
    if from_account_id == to_account_id:
        raise SameAccountTransfer()
    if not concept:
        raise ValidationError("concept is required", {"field": "concept"})
    amount = round_money(amount)
    if amount <= 0:
        raise ValidationError("amount must be positive", {"field": "amount"})

    try:
        # Lock in id order so two opposite transfers cannot deadlock.
        first_id, second_id = sorted((from_account_id, to_account_id))
        locked = {
            first_id: get_account(tenant_id, first_id, lock=True, active_only=True),
            second_id: get_account(tenant_id, second_id, lock=True, active_only=True),
        }
        source = locked[from_account_id]
        destination = locked[to_account_id]

        balance = round_money(source.current_balance)
        if balance < amount:
            raise InsufficientFunds(balance, amount)

        out_movement = _post(
            source,
            movement_type="TRANSFER_OUT",
            amount=amount,
            delta=-amount,
            concept=concept,
            reference=reference,
            related_account_id=destination.id,
            user_id=user_id,
        )
        in_movement = _post(
            destination,
            movement_type="TRANSFER_IN",
            amount=amount,
            delta=amount,
            concept=concept,
            reference=reference,
            related_account_id=source.id,
            user_id=user_id,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Transferred %s from cash account %s to %s", amount, from_account_id, to_account_id)
    return out_movement, in_movement


def _main_cash_account(tenant_id: int) -> CashAccount | None:
    return lock_for_update(
        db.session.query(CashAccount)
        .filter_by(tenant_id=tenant_id, account_type="CASH", is_active=True)
        .order_by(CashAccount.id)
    ).first()


def withdraw_register_float(
    *,
    tenant_id: int,
    amount,
    concept: str,
    register_session_id: int,
    user_id: int | None = None,
) -> CashAccountMovement | None:
    """
    Take an opening drawer float out of the main CASH account (TRANSFER_OUT).

    Runs inside the register open transaction; does not commit. Returns
    None when there is no active CASH account. Raises InsufficientFunds
    when the account cannot cover the float.
    """
    account = _main_cash_account(tenant_id)
    if account is None:
        return None
    amount = round_money(amount)
    balance = round_money(account.current_balance)
    if balance < amount:
        raise InsufficientFunds(balance, amount)
    return _post(
        account,
        movement_type="TRANSFER_OUT",
        amount=amount,
        delta=-amount,
        concept=concept,
        reference=str(register_session_id),
        register_session_id=register_session_id,
        user_id=user_id,
    )


def receive_register_cash(
    *,
    tenant_id: int,
    amount,
    concept: str,
    register_session_id: int,
    user_id: int | None = None,
) -> CashAccountMovement | None:
    """
    Move a closed drawer's cash into the main CASH account (TRANSFER_IN).

    Runs inside the register close transaction; does not commit. Returns
    None when there is no active CASH account.
    """
    account = _main_cash_account(tenant_id)
    if account is None:
        return None
    amount = round_money(amount)
    return _post(
        account,
        movement_type="TRANSFER_IN",
        amount=amount,
        delta=amount,
        concept=concept,
        reference=str(register_session_id),
        register_session_id=register_session_id,
        user_id=user_id,
    )


def list_movements(tenant_id: int, account_id: int, limit: int = 100) -> list[CashAccountMovement]:
    get_account(tenant_id, account_id)
    return (
        db.session.query(CashAccountMovement)
        .filter_by(tenant_id=tenant_id, cash_account_id=account_id)
        .order_by(CashAccountMovement.created_at.desc(), CashAccountMovement.id.desc())
        .limit(limit)
        .all()
    )
