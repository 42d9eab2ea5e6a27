from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, utcnow


class CashRegisterSession(db.Model):
    """
    Cash drawer session (open -> close) at a location.

    At most one OPEN session per location. Sales are permanently tagged
    with the session they were posted in. Closed sessions are immutable.
    """
    __tablename__ = "cash_register_sessions"
    __table_args__ = (
        db.Index("ix_cash_register_sessions_tenant_status", "tenant_id", "status"),
        db.Index("ix_cash_register_sessions_location_status", "location_id", "status"),
        db.Index(
            "uq_cash_register_sessions_open_location",
            "location_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="OPEN")  # OPEN, CLOSED

    opening_balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    closing_balance = db.Column(db.Numeric(12, 2), nullable=True)
    expected_balance = db.Column(db.Numeric(12, 2), nullable=True)
    difference = db.Column(db.Numeric(12, 2), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    location = db.relationship("Location")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "user_id": self.user_id,
            "status": self.status,
            "opening_balance": money_str(self.opening_balance),
            "closing_balance": money_str(self.closing_balance),
            "expected_balance": money_str(self.expected_balance),
            "difference": money_str(self.difference),
            "notes": self.notes,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "closed_by_user_id": self.closed_by_user_id,
        }


class RegisterTransaction(db.Model):
    """Manual cash in (INCOME) or out (EXPENSE) of an open drawer."""
    __tablename__ = "register_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=False, index=True)
    transaction_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    concept = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    session = db.relationship("CashRegisterSession", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "transaction_type": self.transaction_type,
            "amount": money_str(self.amount),
            "concept": self.concept,
            "category": self.category,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
