# Overview: Flask API routes for clients and their credit balance.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_capability
from ..errors import ServiceError
from ..extensions import db
from ..schemas import PayClientOrder, parse_client_action
from ..services import client_service


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
@require_capability("VIEW_CLIENTS")
def list_clients_route():
    clients = client_service.list_clients()
    return jsonify({"clients": [c.to_dict() for c in clients]}), 200


@clients_bp.post("")
@require_auth
@require_capability("MANAGE_CLIENTS")
def create_client_route():
    client = client_service.create_client(request.get_json(silent=True) or {})
    return jsonify(client.to_dict()), 201


@clients_bp.get("/<int:client_id>")
@require_auth
@require_capability("VIEW_CLIENTS")
def get_client_route(client_id: int):
    """Client plus its pending deferred orders."""
    client = client_service.get_client(client_id)
    result = client.to_dict()
    result["pending_orders"] = [o.to_dict() for o in client_service.get_pending_orders(client_id)]
    return jsonify(result), 200


@clients_bp.put("/<int:client_id>")
@require_auth
@require_capability("MANAGE_CLIENTS")
def update_client_route(client_id: int):
    client = client_service.update_client(client_id, request.get_json(silent=True) or {})
    return jsonify(client.to_dict()), 200


@clients_bp.delete("/<int:client_id>")
@require_auth
@require_capability("MANAGE_CLIENTS")
def delete_client_route(client_id: int):
    client_service.delete_client(client_id)
    return jsonify({"ok": True}), 200


@clients_bp.patch("/<int:client_id>")
@require_auth
@require_capability("MANAGE_CLIENTS")
def client_action_route(client_id: int):
    """
    Balance actions.

    {"action": "pay_order", "order_id": 7, "amount_cents": 5000, "method": "PIX"}
        amount_cents optional (whole remaining amount); method defaults to CASH
    {"action": "adjust_balance", "amount_cents": -2000}
    """
    try:
        action = parse_client_action(request.get_json(silent=True))
        client_service.get_client(client_id)

        if isinstance(action, PayClientOrder):
            order = client_service.settle_order(
                client_id,
                action.order_id,
                amount_cents=action.amount_cents,
                method=action.method,
                actor=g.current_user,
            )
            client = client_service.get_client(client_id)
            return jsonify({"client": client.to_dict(), "order": order.to_dict()}), 200

        client = client_service.manual_adjust_balance(client_id, action.amount_cents, g.current_user)
        return jsonify({"client": client.to_dict()}), 200

    except ServiceError as e:
        current_app.logger.warning("%s %s -> %s: %s", request.method, request.path, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update client balance")
        return jsonify({"error": "Internal server error"}), 500
