"""
Cash Register Session Service

WHY: Every sale is attributed to an open drawer session so cash can be
reconciled at close. Card, QR, transfer and account tenders are settled
outside the drawer; only CASH counts towards the expected balance.

DESIGN PRINCIPLES:
- At most one OPEN session per location
- Sessions are immutable once closed
- expected = opening + CASH tenders + drawer incomes - drawer expenses
- Opening takes the float out of the treasury CASH account
- Closing moves the counted cash back into it
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..errors import (
    NoLocationConfigured,
    NoOpenRegister,
    NotFound,
    RegisterAlreadyOpen,
    RegisterClosed,
    TreasuryCashAccountMissing,
    ValidationError,
)
from ..extensions import db
from ..models import CashRegisterSession, Location, Payment, RegisterTransaction, Sale, User
from ..money import ZERO, round_money
from ..time_utils import utcnow
from .cash_account_service import receive_register_cash, withdraw_register_float
from .concurrency import lock_for_update
from .sale_schemas import PAYMENT_METHODS

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("INCOME", "EXPENSE")


# =============================================================================
# LOOKUPS
# =============================================================================

def resolve_location_id(tenant_id: int, location_id: int | None) -> int:
    """
    The operator's location, or the tenant's default (first) location.

    Raises NoLocationConfigured when the tenant has no location at all.
    """
    if location_id is not None:
        return location_id
    default = (
        db.session.query(Location.id)
        .filter_by(tenant_id=tenant_id)
        .order_by(Location.id)
        .first()
    )
    if default is None:
        raise NoLocationConfigured()
    return default[0]


def resolve_open_session(tenant_id: int, location_id: int | None) -> CashRegisterSession:
    """
    Find the OPEN session a sale should be posted into.

    Prefers the session at `location_id`; falls back to any OPEN session of
    the tenant, in which case the sale adopts that session's location.
    """
    query = db.session.query(CashRegisterSession).filter_by(tenant_id=tenant_id, status="OPEN")
    session = None
    if location_id is not None:
        session = query.filter_by(location_id=location_id).order_by(CashRegisterSession.id).first()
    if session is None:
        session = query.order_by(CashRegisterSession.id).first()
    if session is None:
        raise NoOpenRegister()
    return session


def _open_session_at(tenant_id: int, location_id: int) -> CashRegisterSession | None:
    return db.session.query(CashRegisterSession).filter_by(
        tenant_id=tenant_id,
        location_id=location_id,
        status="OPEN",
    ).first()


def get_session(tenant_id: int, session_id: int, *, lock: bool = False) -> CashRegisterSession:
    """Tenant-scoped session; lock=True re-reads the row FOR UPDATE."""
    query = db.session.query(CashRegisterSession).filter_by(id=session_id, tenant_id=tenant_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    session = query.first()
    if session is None:
        raise NotFound("Register session not found", {"session_id": session_id})
    return session


def get_current_session(tenant_id: int, location_id: int | None) -> CashRegisterSession | None:
    try:
        return resolve_open_session(tenant_id, location_id)
    except NoOpenRegister:
        return None


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_session(
    *,
    tenant_id: int,
    user: User,
    location_id: int | None = None,
    opening_balance=0,
) -> CashRegisterSession:
    """
    Open a drawer session at the operator's (or the default) location.

    A positive opening float is taken out of the tenant's active CASH
    treasury account in the same transaction.
    """
    opening = round_money(opening_balance)
    if opening < 0:
        raise ValidationError("opening_balance cannot be negative", {"field": "opening_balance"})

    location_id = resolve_location_id(tenant_id, location_id if location_id is not None else user.location_id)

    try:
        # The location row serializes concurrent opens at one location.
        location = lock_for_update(
            db.session.query(Location).filter_by(id=location_id, tenant_id=tenant_id)
        ).first()
        if location is None:
            raise NotFound("Location not found", {"location_id": location_id})

        existing = _open_session_at(tenant_id, location_id)
        if existing:
            raise RegisterAlreadyOpen(existing.id)

        session = CashRegisterSession(
            tenant_id=tenant_id,
            location_id=location_id,
            user_id=user.id,
            status="OPEN",
            opening_balance=opening,
            opened_at=utcnow(),
        )
        db.session.add(session)
        db.session.flush()

        if opening > 0:
            movement = withdraw_register_float(
                tenant_id=tenant_id,
                amount=opening,
                concept=f"Register open #{session.id} - Float",
                register_session_id=session.id,
                user_id=user.id,
            )
            if movement is None:
                raise TreasuryCashAccountMissing()

        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = _open_session_at(tenant_id, location_id)
        if existing is None:
            raise
        raise RegisterAlreadyOpen(existing.id)
    except Exception:
        db.session.rollback()
        raise

    logger.info("Opened register session %s at location %s with float %s", session.id, location_id, opening)
    return session


def record_transaction(
    *,
    tenant_id: int,
    session_id: int,
    transaction_type: str,
    amount,
    concept: str,
    category: str | None = None,
    user_id: int | None = None,
) -> RegisterTransaction:
    """Manual cash put into (INCOME) or taken out of (EXPENSE) an open drawer."""
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type: {transaction_type}", {"field": "type"})
    if not concept:
        raise ValidationError("concept is required", {"field": "concept"})
    amount = round_money(amount)
    if amount <= 0:
        raise ValidationError("amount must be positive", {"field": "amount"})

    session = get_session(tenant_id, session_id)
    if session.status != "OPEN":
        raise RegisterClosed(session.id)

    tx = RegisterTransaction(
        tenant_id=tenant_id,
        session_id=session.id,
        transaction_type=transaction_type,
        amount=amount,
        concept=concept,
        category=category,
        user_id=user_id,
    )
    db.session.add(tx)
    db.session.commit()
    return tx


def payment_breakdown(session_id: int) -> dict[str, Decimal]:
    """Sum of COMPLETED sale tenders in the session, per payment method."""
    breakdown: dict[str, Decimal] = {method: ZERO for method in PAYMENT_METHODS}
    rows = (
        db.session.query(Payment.method, Payment.amount)
        .join(Sale, Sale.id == Payment.sale_id)
        .filter(Sale.register_session_id == session_id, Sale.status == "COMPLETED")
        .all()
    )
    for method, amount in rows:
        key = method if method in breakdown else "OTHER"
        breakdown[key] = round_money(breakdown[key] + amount)
    return breakdown


def _drawer_totals(session_id: int) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in db.session.query(RegisterTransaction).filter_by(session_id=session_id).all():
        totals[tx.transaction_type] = round_money(totals[tx.transaction_type] + tx.amount)
    return {"INCOME": totals["INCOME"], "EXPENSE": totals["EXPENSE"]}


def close_session(
    *,
    tenant_id: int,
    session_id: int,
    closing_balance,
    notes: str | None = None,
    user_id: int | None = None,
) -> dict:
    """
    Close a session and reconcile the drawer.

    Returns the closed session plus the figures used for reconciliation.
    The counted cash (closing_balance > 0) is moved into the tenant's
    active CASH treasury account in the same transaction.
    """
    closing = round_money(closing_balance)
    if closing < 0:
        raise ValidationError("closing_balance cannot be negative", {"field": "closing_balance"})

    try:
        session = get_session(tenant_id, session_id, lock=True)
        if session.status == "CLOSED":
            raise RegisterClosed(session.id)

        breakdown = payment_breakdown(session.id)
        drawer = _drawer_totals(session.id)
        cash_sales = breakdown["CASH"]
        expected = round_money(session.opening_balance + cash_sales + drawer["INCOME"] - drawer["EXPENSE"])

        session.status = "CLOSED"
        session.closed_at = utcnow()
        session.closed_by_user_id = user_id
        session.closing_balance = closing
        session.expected_balance = expected
        session.difference = round_money(closing - expected)
        if notes:
            session.notes = f"{session.notes or ''}\n{notes}".strip()

        if closing > 0:
            movement = receive_register_cash(
                tenant_id=tenant_id,
                amount=closing,
                concept=f"Register close #{session.id} - Cash",
                register_session_id=session.id,
                user_id=user_id,
            )
            if movement is None:
                raise TreasuryCashAccountMissing()

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Closed register session %s: expected %s, counted %s, difference %s",
        session.id, expected, closing, session.difference,
    )
    return {
        "session": session,
        "sales_total": cash_sales,
        "sales_fiscal_total": round_money(sum(breakdown.values(), ZERO)),
        "payment_breakdown": breakdown,
        "incomes": drawer["INCOME"],
        "expenses": drawer["EXPENSE"],
    }
