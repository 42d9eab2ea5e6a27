# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

"""
Stock Ledger Invariants (authoritative)

- Stock.quantity for (location, item) equals SUM(StockMovement.quantity) for
  the same (location, item). Both are written in the same DB transaction.
- Stock never goes negative. A decrement that would is rejected with
  InsufficientStock and nothing is written.
- StockMovement rows are append-only (no updates/deletes).
- An item is a product or a variant (ItemRef), never both. Lookups and
  movements use the same branch via ItemRef.key / ItemRef.columns().
- Rows touched by a decrement are locked (SELECT ... FOR UPDATE) for the
  rest of the transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import InsufficientStock, NotFound, ValidationError
from ..extensions import db
from ..models import Location, Stock, StockMovement
from .catalog_service import item_label, resolve_item
from .concurrency import lock_for_update
from .sale_schemas import ItemRef

logger = logging.getLogger(__name__)

# +1 adds stock, -1 removes it, 0 means the caller passes a signed delta.
MOVEMENT_SIGNS = {
    "PURCHASE": 1,
    "RETURN": 1,
    "SALE": -1,
    "LOSS": -1,
    "ADJUSTMENT": 0,
}


def _stock_query(tenant_id: int, location_id: int, item_ref: ItemRef):
    return db.session.query(Stock).filter(
        Stock.tenant_id == tenant_id,
        Stock.location_id == location_id,
        Stock.item_key == item_ref.key,
    )


def _require_location(tenant_id: int, location_id: int) -> Location:
    location = db.session.query(Location).filter_by(id=location_id, tenant_id=tenant_id).first()
    if location is None:
        raise NotFound("Location not found", {"location_id": location_id})
    return location


def get_stock_level(tenant_id: int, location_id: int, item_ref: ItemRef) -> int:
    """Current quantity from the materialized row (0 when there is no row)."""
    stock = _stock_query(tenant_id, location_id, item_ref).first()
    return stock.quantity if stock else 0


def ledger_quantity(tenant_id: int, location_id: int, item_ref: ItemRef) -> int:
    """Quantity recomputed from the movement ledger."""
    total = db.session.query(
        func.coalesce(func.sum(StockMovement.quantity), 0)
    ).filter(
        StockMovement.tenant_id == tenant_id,
        StockMovement.location_id == location_id,
        StockMovement.item_key == item_ref.key,
    ).scalar()
    return int(total or 0)


def check_available(
    *,
    tenant_id: int,
    location_id: int,
    item_ref: ItemRef,
    quantity: int,
    label: str,
) -> Stock:
    """
    Lock the stock row and verify it covers `quantity`.

    A missing row counts as zero stock.
    """
    stock = lock_for_update(_stock_query(tenant_id, location_id, item_ref)).first()
    available = stock.quantity if stock else 0
    if stock is None or available < quantity:
        raise InsufficientStock(label, quantity, available)
    return stock


def _append_movement(
    stock: Stock,
    *,
    item_ref: ItemRef,
    movement_type: str,
    delta: int,
    reason: str | None,
    user_id: int | None,
    sale_id: int | None = None,
) -> StockMovement:
    stock.quantity = stock.quantity + delta
    movement = StockMovement(
        tenant_id=stock.tenant_id,
        location_id=stock.location_id,
        item_key=item_ref.key,
        movement_type=movement_type,
        quantity=delta,
        reason=reason,
        sale_id=sale_id,
        user_id=user_id,
        **item_ref.columns(),
    )
    db.session.add(movement)
    return movement


def check_and_reserve(
    *,
    tenant_id: int,
    location_id: int,
    item_ref: ItemRef,
    quantity: int,
    label: str,
    reason: str,
    sale_id: int | None,
    user_id: int | None,
) -> StockMovement:
    """
    Decrement stock for a sale line and append its SALE movement.

    Must run inside the sale's transaction; does not commit.
    """
    stock = check_available(
        tenant_id=tenant_id,
        location_id=location_id,
        item_ref=item_ref,
        quantity=quantity,
        label=label,
    )
    return _append_movement(
        stock,
        item_ref=item_ref,
        movement_type="SALE",
        delta=-quantity,
        reason=reason,
        user_id=user_id,
        sale_id=sale_id,
    )


def record_movement(
    *,
    tenant_id: int,
    location_id: int,
    item_ref: ItemRef,
    movement_type: str,
    quantity: int,
    reason: str | None = None,
    user_id: int | None = None,
    commit: bool = True,
) -> StockMovement:
    """
    Post a manual stock movement (purchase receipt, loss, adjustment, return).

    PURCHASE/RETURN take a positive quantity and add it, SALE/LOSS take a
    positive quantity and remove it, ADJUSTMENT takes a signed delta.
    """
    if movement_type not in MOVEMENT_SIGNS:
        raise ValidationError(f"Unknown movement type: {movement_type}", {"field": "movement_type"})
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer", {"field": "quantity"})

    sign = MOVEMENT_SIGNS[movement_type]
    if sign == 0:
        if quantity == 0:
            raise ValidationError("Adjustment quantity cannot be zero", {"field": "quantity"})
        delta = quantity
    else:
        if quantity <= 0:
            raise ValidationError("quantity must be positive", {"field": "quantity"})
        delta = sign * quantity

    _require_location(tenant_id, location_id)
    product, variant = resolve_item(tenant_id, item_ref)

    try:
        stock = lock_for_update(_stock_query(tenant_id, location_id, item_ref)).first()
        if stock is None:
            if delta < 0:
                raise InsufficientStock(item_label(product, variant), -delta, 0)
            stock = Stock(
                tenant_id=tenant_id,
                location_id=location_id,
                item_key=item_ref.key,
                quantity=0,
                **item_ref.columns(),
            )
            db.session.add(stock)
        elif stock.quantity + delta < 0:
            raise InsufficientStock(item_label(product, variant), -delta, stock.quantity)

        movement = _append_movement(
            stock,
            item_ref=item_ref,
            movement_type=movement_type,
            delta=delta,
            reason=reason,
            user_id=user_id,
        )
        if commit:
            db.session.commit()
        else:
            db.session.flush()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Stock %s %+d for %s at location %s",
        movement_type, delta, item_ref.key, location_id,
    )
    return movement


def list_stock(tenant_id: int, location_id: int | None = None) -> list[Stock]:
    query = db.session.query(Stock).filter(Stock.tenant_id == tenant_id)
    if location_id is not None:
        query = query.filter(Stock.location_id == location_id)
    return query.order_by(Stock.location_id, Stock.item_key).all()


def list_movements(
    tenant_id: int,
    *,
    location_id: int | None = None,
    item_ref: ItemRef | None = None,
    sale_id: int | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    query = db.session.query(StockMovement).filter(StockMovement.tenant_id == tenant_id)
    if location_id is not None:
        query = query.filter(StockMovement.location_id == location_id)
    if item_ref is not None:
        query = query.filter(StockMovement.item_key == item_ref.key)
    if sale_id is not None:
        query = query.filter(StockMovement.sale_id == sale_id)
    return query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit).all()


def find_ledger_drift(tenant_id: int | None = None) -> list[dict]:
    """Stock rows whose quantity differs from their movement ledger sum."""
    sums = (
        db.session.query(
            StockMovement.location_id,
            StockMovement.item_key,
            func.sum(StockMovement.quantity).label("ledger"),
        )
        .group_by(StockMovement.location_id, StockMovement.item_key)
        .subquery()
    )
    query = db.session.query(Stock, func.coalesce(sums.c.ledger, 0)).outerjoin(
        sums,
        (sums.c.location_id == Stock.location_id) & (sums.c.item_key == Stock.item_key),
    )
    if tenant_id is not None:
        query = query.filter(Stock.tenant_id == tenant_id)

    drift = []
    for stock, ledger in query.all():
        if int(ledger) != stock.quantity:
            drift.append({
                "stock_id": stock.id,
                "location_id": stock.location_id,
                "item_key": stock.item_key,
                "quantity": stock.quantity,
                "ledger_quantity": int(ledger),
            })
    return drift
