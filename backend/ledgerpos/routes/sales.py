# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/ledgerpos/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import LedgerError
from ..services import sales_service
from ..services.concurrency import run_with_retry
from ..services.sale_schemas import parse_sale_request
from ..services.sales_service import SaleContext
from ..validation import day_arg, int_arg, limit_arg
from ..decorators import require_context


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_context
def post_sale_route():
    """
    Post a complete sale (items + tenders) in one atomic operation.

    Accepts the current payload (payments list, discountType/discountValue)
    and the legacy one (paymentMethod, item discount %, cart discountAmount).
    """
    try:
        sale_request = parse_sale_request(request.get_json(silent=True))
        context = SaleContext(
            tenant_id=g.tenant_id,
            operator_id=g.current_user.id,
            location_id=g.location_id,
        )
        config = current_app.config

        sale = run_with_retry(
            lambda: sales_service.post_sale(
                context,
                sale_request,
                prefix=config["SALE_NUMBER_PREFIX"],
                timeout_seconds=config["SALE_TRANSACTION_TIMEOUT_SECONDS"],
            ),
            attempts=config["SALE_RETRY_ATTEMPTS"],
        )
        return jsonify({"sale": sale.to_dict(include_lines=True)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to post sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_context
def list_sales_route():
    """
    List sales, newest first.

    Query params: location_id, session_id, search (sale number), from/to
    (YYYY-MM-DD, inclusive), payment_method, status, limit (default 50).
    """
    try:
        args = request.args
        sales = sales_service.list_sales(
            g.tenant_id,
            location_id=int_arg(args, "location_id"),
            session_id=int_arg(args, "session_id"),
            search=args.get("search") or None,
            date_from=day_arg(args, "from"),
            date_to=day_arg(args, "to"),
            payment_method=args.get("payment_method") or None,
            status=args.get("status") or None,
            limit=limit_arg(args),
        )
        return jsonify({"sales": [sale.to_dict(include_lines=True) for sale in sales]}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_context
def get_sale_route(sale_id: int):
    """Get sale with items and payments."""
    try:
        sale = sales_service.get_sale(g.tenant_id, sale_id)
        return jsonify({"sale": sale.to_dict(include_lines=True)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500
