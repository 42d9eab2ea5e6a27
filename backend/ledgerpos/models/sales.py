from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Completed sale. Immutable once committed.

    Money invariants (enforced by sales_service.post_sale):
    - total == subtotal + tax_amount (after the cart discount)
    - total == sum(payments.amount) within 0.01
    - subtotal/tax_amount are extracted from tax-inclusive line totals
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "sale_number", name="uq_sales_tenant_number"),
        db.Index("ix_sales_tenant_created", "tenant_id", "created_at"),
        db.Index("ix_sales_register_session", "register_session_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    register_session_id = db.Column(db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=False)

    # Human-readable number (e.g., "SALE-000123")
    sale_number = db.Column(db.String(32), nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False)
    discount_type = db.Column(db.String(16), nullable=True)  # PERCENTAGE, FIXED
    discount_value = db.Column(db.Numeric(12, 2), nullable=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    items = db.relationship("SaleItem", backref="sale", lazy=True, order_by="SaleItem.id")
    payments = db.relationship("Payment", backref="sale", lazy=True, order_by="Payment.id")
    customer = db.relationship("Customer")

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "location_id": self.location_id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "register_session_id": self.register_session_id,
            "sale_number": self.sale_number,
            "subtotal": money_str(self.subtotal),
            "tax_amount": money_str(self.tax_amount),
            "discount_type": self.discount_type,
            "discount_value": money_str(self.discount_value),
            "discount_amount": money_str(self.discount_amount),
            "total": money_str(self.total),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class SaleItem(db.Model):
    """
    One line of a sale.

    cost_price is a snapshot taken at sale time for COGS; it is never
    re-derived from the product's current cost.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint(
            "(product_id IS NULL) <> (product_variant_id IS NULL)",
            name="ck_sale_items_one_item_ref",
        ),
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    cost_price = db.Column(db.Numeric(12, 2), nullable=True)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False)

    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(db.Numeric(12, 2), nullable=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_variant_id": self.product_variant_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "cost_price": money_str(self.cost_price),
            "tax_rate": money_str(self.tax_rate),
            "discount_type": self.discount_type,
            "discount_value": money_str(self.discount_value),
            "discount_amount": money_str(self.discount_amount),
            "subtotal": money_str(self.subtotal),
            "tax_amount": money_str(self.tax_amount),
            "total": money_str(self.total),
        }


class Payment(db.Model):
    """
    Tender entry applied to a sale.

    METHODS: CASH, DEBIT_CARD, CREDIT_CARD, TRANSFER, QR, CHECK, ACCOUNT, OTHER.
    reference holds "card:<last four>" or "ref:<transfer reference>".
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_sale_method", "sale_id", "method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    method = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount": money_str(self.amount),
            "reference": self.reference,
        }
