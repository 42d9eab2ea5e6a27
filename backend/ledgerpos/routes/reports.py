# Overview: Flask API routes for financial reports; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import LedgerError
from ..services import reporting_service
from ..time_utils import utcnow
from ..validation import day_arg
from ..decorators import require_context


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/profit-loss")
@require_context
def profit_loss_report():
    """
    Profit and loss for ?from=YYYY-MM-DD&to=YYYY-MM-DD (both inclusive).

    Defaults to the current month up to today.
    """
    try:
        today = utcnow().date()
        date_from = day_arg(request.args, "from") or today.replace(day=1)
        date_to = day_arg(request.args, "to") or today
        report = reporting_service.profit_and_loss(
            tenant_id=g.tenant_id,
            date_from=date_from,
            date_to=date_to,
        )
        return jsonify(report), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build profit and loss report")
        return jsonify({"error": "Internal server error"}), 500
