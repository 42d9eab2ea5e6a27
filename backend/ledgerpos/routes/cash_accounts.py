# Overview: Flask API routes for treasury cash accounts; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import LedgerError
from ..services import cash_account_service
from ..validation import int_field, limit_arg, money_field, require_json, text_field
from ..decorators import require_context


cash_accounts_bp = Blueprint("cash_accounts", __name__, url_prefix="/api/cash-accounts")


@cash_accounts_bp.get("")
@require_context
def list_accounts_route():
    try:
        accounts = cash_account_service.list_accounts(g.tenant_id)
        return jsonify({"accounts": [a.to_dict() for a in accounts]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list cash accounts")
        return jsonify({"error": "Internal server error"}), 500


@cash_accounts_bp.post("")
@require_context
def create_account_route():
    try:
        data = require_json(request.get_json(silent=True))
        account = cash_account_service.create_account(
            tenant_id=g.tenant_id,
            name=text_field(data, "name"),
            account_type=text_field(data, "account_type", "accountType", required=False, default="BANK"),
            opening_balance=money_field(data, "opening_balance", "openingBalance", required=False, default=0),
        )
        return jsonify({"account": account.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create cash account")
        return jsonify({"error": "Internal server error"}), 500


@cash_accounts_bp.get("/<int:account_id>/movements")
@require_context
def list_movements_route(account_id: int):
    try:
        movements = cash_account_service.list_movements(
            g.tenant_id, account_id, limit=limit_arg(request.args, default=100)
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list cash account movements")
        return jsonify({"error": "Internal server error"}), 500


@cash_accounts_bp.post("/<int:account_id>/movements")
@require_context
def record_movement_route(account_id: int):
    """Manual PAID (money out) or RECEIVED (money in) entry."""
    try:
        data = require_json(request.get_json(silent=True))
        movement = cash_account_service.record_manual_movement(
            tenant_id=g.tenant_id,
            account_id=account_id,
            movement_type=text_field(data, "type", "movement_type", "movementType"),
            amount=money_field(data, "amount"),
            concept=text_field(data, "concept"),
            reference=text_field(data, "reference", required=False),
            user_id=g.current_user.id,
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record cash account movement")
        return jsonify({"error": "Internal server error"}), 500


@cash_accounts_bp.post("/transfer")
@require_context
def transfer_route():
    try:
        data = require_json(request.get_json(silent=True))
        out_movement, in_movement = cash_account_service.transfer(
            tenant_id=g.tenant_id,
            from_account_id=int_field(data, "from_account_id", "fromAccountId"),
            to_account_id=int_field(data, "to_account_id", "toAccountId"),
            amount=money_field(data, "amount"),
            concept=text_field(data, "concept"),
            reference=text_field(data, "reference", required=False),
            user_id=g.current_user.id,
        )
        return jsonify({"out": out_movement.to_dict(), "in": in_movement.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to transfer between cash accounts")
        return jsonify({"error": "Internal server error"}), 500


@cash_accounts_bp.put("/payment-methods/<string:payment_method>")
@require_context
def set_payment_method_account_route(payment_method: str):
    """Route a payment method's sale proceeds to a treasury account."""
    try:
        data = require_json(request.get_json(silent=True))
        mapping = cash_account_service.set_payment_method_account(
            tenant_id=g.tenant_id,
            payment_method=payment_method.upper(),
            cash_account_id=int_field(data, "cash_account_id", "cashAccountId"),
        )
        return jsonify({"mapping": mapping.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to map payment method")
        return jsonify({"error": "Internal server error"}), 500
