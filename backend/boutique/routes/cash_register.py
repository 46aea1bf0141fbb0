# Overview: Flask API routes for the caller's cash-register session.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_capability
from ..errors import ServiceError
from ..extensions import db
from ..schemas import OpenRegister, parse_register_action
from ..services import register_service


cash_register_bp = Blueprint("cash_register", __name__, url_prefix="/api/cash-register")


@cash_register_bp.get("")
@require_auth
@require_capability("OPERATE_REGISTER")
def get_register_route():
    """Current open session for the authenticated cashier, or null."""
    register = register_service.get_open_register(g.current_user.id)
    return jsonify({"register": register.to_dict() if register else None}), 200


@cash_register_bp.post("")
@require_auth
@require_capability("OPERATE_REGISTER")
def register_action_route():
    """
    Open or close the caller's register.

    {"action": "open", "opening_balance_cents": 10000}  -> 201 {register}
    {"action": "close", "closing_balance_cents": 25000} -> 200 {register, orders}
    """
    try:
        action = parse_register_action(request.get_json(silent=True))

        if isinstance(action, OpenRegister):
            register = register_service.open_register(g.current_user, action.opening_balance_cents)
            return jsonify({"register": register.to_dict()}), 201

        register, orders = register_service.close_register(g.current_user, action.closing_balance_cents)
        return jsonify({
            "register": register.to_dict(),
            "orders": [o.to_dict() for o in orders],
        }), 200

    except ServiceError as e:
        current_app.logger.warning("%s %s -> %s: %s", request.method, request.path, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update cash register")
        return jsonify({"error": "Internal server error"}), 500
