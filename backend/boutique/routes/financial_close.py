# Overview: Flask API routes for competency-month closures.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_capability
from ..errors import ServiceError
from ..extensions import db
from ..services import closure_service


financial_close_bp = Blueprint("financial_close", __name__, url_prefix="/api/financial-close")


@financial_close_bp.get("")
@require_auth
@require_capability("CLOSE_MONTH")
def list_closures_route():
    closures = closure_service.list_closures()
    return jsonify({
        "current_month": closure_service.current_month(),
        "closures": [c.to_dict() for c in closures],
    }), 200


@financial_close_bp.post("")
@require_auth
@require_capability("CLOSE_MONTH")
def close_month_route():
    """
    Close a past month: {"month": "YYYY-MM"}.

    400 for a malformed, current or future month; 409 if already closed.
    """
    try:
        data = request.get_json(silent=True)
        month = data.get("month") if isinstance(data, dict) else None
        closure = closure_service.close_month(month, g.current_user)
        return jsonify(closure.to_dict()), 201

    except ServiceError as e:
        current_app.logger.warning("%s %s -> %s: %s", request.method, request.path, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to close financial month")
        return jsonify({"error": "Internal server error"}), 500
