# Overview: Flask API routes for customer accounts receivable; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import LedgerError
from ..services import customer_account_service
from ..validation import field, limit_arg, money_field, require_json, text_field
from ..decorators import require_context


customer_accounts_bp = Blueprint("customer_accounts", __name__, url_prefix="/api/customers")


@customer_accounts_bp.get("/<int:customer_id>/account")
@require_context
def get_account_route(customer_id: int):
    """Account balance, limit and available credit (account is created on first read)."""
    try:
        summary = customer_account_service.account_summary(g.tenant_id, customer_id)
        return jsonify({"account": summary}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load customer account")
        return jsonify({"error": "Internal server error"}), 500


@customer_accounts_bp.patch("/<int:customer_id>/account")
@require_context
def update_account_route(customer_id: int):
    """Change credit_limit and/or is_active."""
    try:
        data = require_json(request.get_json(silent=True))
        is_active = field(data, "is_active", "isActive")
        account = customer_account_service.update_account(
            tenant_id=g.tenant_id,
            customer_id=customer_id,
            credit_limit=money_field(data, "credit_limit", "creditLimit", required=False),
            is_active=bool(is_active) if is_active is not None else None,
        )
        return jsonify({"account": account.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer account")
        return jsonify({"error": "Internal server error"}), 500


@customer_accounts_bp.post("/<int:customer_id>/account/payments")
@require_context
def register_payment_route(customer_id: int):
    """Register money received from the customer."""
    try:
        data = require_json(request.get_json(silent=True))
        movement = customer_account_service.register_payment(
            tenant_id=g.tenant_id,
            customer_id=customer_id,
            amount=money_field(data, "amount"),
            concept=text_field(data, "concept", required=False, default="Account payment"),
            reference=text_field(data, "reference", required=False),
            user_id=g.current_user.id,
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register account payment")
        return jsonify({"error": "Internal server error"}), 500


@customer_accounts_bp.post("/<int:customer_id>/account/adjustments")
@require_context
def adjust_account_route(customer_id: int):
    """Signed manual correction of the balance."""
    try:
        data = require_json(request.get_json(silent=True))
        movement = customer_account_service.adjust(
            tenant_id=g.tenant_id,
            customer_id=customer_id,
            amount=money_field(data, "amount"),
            concept=text_field(data, "concept"),
            user_id=g.current_user.id,
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust customer account")
        return jsonify({"error": "Internal server error"}), 500


@customer_accounts_bp.get("/<int:customer_id>/account/movements")
@require_context
def list_account_movements_route(customer_id: int):
    try:
        movements = customer_account_service.list_movements(
            g.tenant_id, customer_id, limit=limit_arg(request.args, default=100)
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
