# Overview: Flask API routes for cash register sessions; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import LedgerError
from ..money import money_str
from ..services import register_service
from ..validation import field, int_field, money_field, require_json, text_field
from ..decorators import require_context


registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")


@registers_bp.post("/open")
@require_context
def open_register_route():
    """Open a drawer session at the operator's location (or the default one)."""
    try:
        data = request.get_json(silent=True) or {}
        session = register_service.open_session(
            tenant_id=g.tenant_id,
            user=g.current_user,
            location_id=int_field(data, "location_id", "locationId", required=False),
            opening_balance=money_field(data, "opening_balance", "openingBalance", required=False, default=0),
        )
        return jsonify({"session": session.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open register session")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/current")
@require_context
def current_register_route():
    try:
        session = register_service.get_current_session(g.tenant_id, g.location_id)
        return jsonify({"session": session.to_dict() if session else None}), 200
    except Exception:
        current_app.logger.exception("Failed to load current register session")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/<int:session_id>/transactions")
@require_context
def register_transaction_route(session_id: int):
    """Record a manual drawer INCOME or EXPENSE."""
    try:
        data = require_json(request.get_json(silent=True))
        tx = register_service.record_transaction(
            tenant_id=g.tenant_id,
            session_id=session_id,
            transaction_type=text_field(data, "type", "transaction_type"),
            amount=money_field(data, "amount"),
            concept=text_field(data, "concept"),
            category=text_field(data, "category", required=False),
            user_id=g.current_user.id,
        )
        return jsonify({"transaction": tx.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record register transaction")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/<int:session_id>/close")
@require_context
def close_register_route(session_id: int):
    """
    Close a drawer session.

    Body: closing_balance (legacy alias: finalBalance), notes.
    """
    try:
        data = request.get_json(silent=True) or {}
        result = register_service.close_session(
            tenant_id=g.tenant_id,
            session_id=session_id,
            closing_balance=money_field(
                data, "closing_balance", "closingBalance", "finalBalance", required=False, default=0
            ),
            notes=field(data, "notes"),
            user_id=g.current_user.id,
        )
        return jsonify({
            "session": result["session"].to_dict(),
            "sales_total": money_str(result["sales_total"]),
            "sales_fiscal_total": money_str(result["sales_fiscal_total"]),
            "payment_breakdown": {k: money_str(v) for k, v in result["payment_breakdown"].items()},
            "incomes": money_str(result["incomes"]),
            "expenses": money_str(result["expenses"]),
        }), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close register session")
        return jsonify({"error": "Internal server error"}), 500
