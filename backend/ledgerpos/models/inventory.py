from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

# Exactly one of product_id / product_variant_id is populated on stock rows.
_ONE_ITEM_REF = "(product_id IS NULL) <> (product_variant_id IS NULL)"


class Stock(db.Model):
    """
    Materialized on-hand quantity per (location, item).

    The row is a cache of the StockMovement ledger: quantity always equals the
    sum of movements for the same (location, item_key), and both are written
    in the same transaction. item_key is "P:<product_id>" or "V:<variant_id>"
    so the uniqueness constraint does not depend on NULL semantics.
    """
    __tablename__ = "stock"
    __table_args__ = (
        db.UniqueConstraint("location_id", "item_key", name="uq_stock_location_item"),
        db.CheckConstraint(_ONE_ITEM_REF, name="ck_stock_one_item_ref"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True, index=True)
    item_key = db.Column(db.String(32), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "product_id": self.product_id,
            "product_variant_id": self.product_variant_id,
            "quantity": self.quantity,
            "min_quantity": self.min_quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    quantity is a signed delta: SALE and LOSS are negative, PURCHASE and
    RETURN positive, ADJUSTMENT either. Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint(_ONE_ITEM_REF, name="ck_stock_movements_one_item_ref"),
        db.Index("ix_stock_movements_location_item", "location_id", "item_key"),
        db.Index("ix_stock_movements_tenant_created", "tenant_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)
    item_key = db.Column(db.String(32), nullable=False)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    # Causing document
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "product_id": self.product_id,
            "product_variant_id": self.product_variant_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "reason": self.reason,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
