from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Customer(db.Model):
    """Customer master data, scoped to a tenant."""
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_tenant_active", "tenant_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "is_active": self.is_active,
        }


class CustomerAccount(db.Model):
    """
    Accounts-receivable running balance, one per customer.

    Sign convention: positive balance = customer has credit with the business,
    negative = customer owes money. credit_limit 0 means unlimited.
    Created lazily on the first ACCOUNT sale or payment.
    """
    __tablename__ = "customer_accounts"
    __table_args__ = (
        db.UniqueConstraint("customer_id", name="uq_customer_accounts_customer"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    credit_limit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("account", uselist=False))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "balance": money_str(self.balance),
            "credit_limit": money_str(self.credit_limit),
            "is_active": self.is_active,
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerAccountMovement(db.Model):
    """Append-only entry of a customer account: CHARGE, PAYMENT or ADJUSTMENT."""
    __tablename__ = "customer_account_movements"
    __table_args__ = (
        db.Index("ix_customer_account_movements_account_created", "customer_account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    customer_account_id = db.Column(db.Integer, db.ForeignKey("customer_accounts.id"), nullable=False)

    movement_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    concept = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    balance_before = db.Column(db.Numeric(12, 2), nullable=False)
    balance_after = db.Column(db.Numeric(12, 2), nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_account_id": self.customer_account_id,
            "movement_type": self.movement_type,
            "amount": money_str(self.amount),
            "concept": self.concept,
            "reference": self.reference,
            "balance_before": money_str(self.balance_before),
            "balance_after": money_str(self.balance_after),
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
