# Overview: Flask API routes for stock levels and movements; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import LedgerError, ValidationError
from ..services import stock_service
from ..services.sale_schemas import make_item_ref
from ..validation import field, int_arg, int_field, limit_arg, require_json, text_field
from ..decorators import require_context


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _location_id(value) -> int:
    if value is not None:
        return value
    if g.location_id is None:
        raise ValidationError("location_id is required", {"field": "location_id"})
    return g.location_id


@stock_bp.get("")
@require_context
def list_stock_route():
    """Stock rows of the tenant, optionally for one location."""
    try:
        rows = stock_service.list_stock(g.tenant_id, location_id=int_arg(request.args, "location_id"))
        return jsonify({"stock": [row.to_dict() for row in rows]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/movements")
@require_context
def record_movement_route():
    """
    Manual stock movement.

    Body: product_id, optional product_variant_id, movement_type
    (PURCHASE | RETURN | LOSS | ADJUSTMENT), quantity, reason,
    optional location_id (defaults to the operator's location).
    """
    try:
        data = require_json(request.get_json(silent=True))
        movement_type = text_field(data, "movement_type", "movementType").upper()
        if movement_type == "SALE":
            raise ValidationError("SALE movements are posted by sales only", {"field": "movement_type"})
        movement = stock_service.record_movement(
            tenant_id=g.tenant_id,
            location_id=_location_id(int_field(data, "location_id", "locationId", required=False)),
            item_ref=make_item_ref(
                field(data, "product_id", "productId"),
                field(data, "product_variant_id", "productVariantId", "variantId"),
            ),
            movement_type=movement_type,
            quantity=int_field(data, "quantity"),
            reason=text_field(data, "reason", required=False),
            user_id=g.current_user.id,
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/movements")
@require_context
def list_movements_route():
    try:
        args = request.args
        item_ref = None
        if args.get("product_id"):
            item_ref = make_item_ref(args.get("product_id"), args.get("product_variant_id"))
        movements = stock_service.list_movements(
            g.tenant_id,
            location_id=int_arg(args, "location_id"),
            item_ref=item_ref,
            sale_id=int_arg(args, "sale_id"),
            limit=limit_arg(args, default=100),
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500
