from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, utcnow


class CashAccount(db.Model):
    """
    Treasury account: bank account, POS-terminal settlement, main cash box.

    current_balance is the materialized sum of its CashAccountMovements.
    """
    __tablename__ = "cash_accounts"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_cash_accounts_tenant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    account_type = db.Column(db.String(16), nullable=False, default="BANK")  # CASH, BANK, OPERATIONAL
    current_balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "account_type": self.account_type,
            "current_balance": money_str(self.current_balance),
            "is_active": self.is_active,
        }


class CashAccountMovement(db.Model):
    """
    Append-only treasury entry.

    Types: SALE_INCOME (non-cash tender of a sale), PAID / RECEIVED (manual),
    TRANSFER_OUT / TRANSFER_IN (between accounts, or register close).
    """
    __tablename__ = "cash_account_movements"
    __table_args__ = (
        db.Index("ix_cash_account_movements_account_created", "cash_account_id", "created_at"),
        db.Index("ix_cash_account_movements_tenant_type", "tenant_id", "movement_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    cash_account_id = db.Column(db.Integer, db.ForeignKey("cash_accounts.id"), nullable=False)

    movement_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    concept = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    balance_before = db.Column(db.Numeric(12, 2), nullable=False)
    balance_after = db.Column(db.Numeric(12, 2), nullable=False)

    related_account_id = db.Column(db.Integer, db.ForeignKey("cash_accounts.id"), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    register_session_id = db.Column(db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_account_id": self.cash_account_id,
            "movement_type": self.movement_type,
            "amount": money_str(self.amount),
            "concept": self.concept,
            "reference": self.reference,
            "balance_before": money_str(self.balance_before),
            "balance_after": money_str(self.balance_after),
            "related_account_id": self.related_account_id,
            "sale_id": self.sale_id,
            "register_session_id": self.register_session_id,
            "created_at": to_utc_z(self.created_at),
        }


class PaymentMethodAccount(db.Model):
    """Which treasury account receives the proceeds of a payment method."""
    __tablename__ = "payment_method_accounts"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "payment_method", name="uq_payment_method_accounts_tenant_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    payment_method = db.Column(db.String(16), nullable=False)
    cash_account_id = db.Column(db.Integer, db.ForeignKey("cash_accounts.id"), nullable=False)

    cash_account = db.relationship("CashAccount")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_method": self.payment_method,
            "cash_account_id": self.cash_account_id,
        }
