# Overview: Flask API routes for merchandise exchanges.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_capability
from ..errors import ServiceError, ValidationError
from ..extensions import db
from ..schemas import parse_exchange
from ..services import exchange_service
from ..services.order_service import day_bounds
from ..time_utils import parse_iso_date


exchanges_bp = Blueprint("exchanges", __name__, url_prefix="/api/exchanges")


@exchanges_bp.get("")
@require_auth
@require_capability("CREATE_EXCHANGE")
def list_exchanges_route():
    """Query params: limit (1..500, default 50), start_date, end_date."""
    try:
        start = parse_iso_date(request.args.get("start_date"))
        end = parse_iso_date(request.args.get("end_date"))
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 dates")
    lower, upper = day_bounds(start, end)

    limit = request.args.get("limit", default=exchange_service.DEFAULT_LIST_LIMIT, type=int)
    exchanges = exchange_service.list_exchanges(limit=limit, start=lower, end=upper)
    return jsonify({"exchanges": [e.to_dict() for e in exchanges]}), 200


@exchanges_bp.post("")
@require_auth
@require_capability("CREATE_EXCHANGE")
def create_exchange_route():
    """
    Request body:
    {
        "items": [
            {"product_id": 1, "size": "M", "quantity": 1, "direction": "IN"},
            {"product_id": 2, "size": "G", "quantity": 1, "direction": "OUT"}
        ],
        "payment_method": "PIX",   (required when OUT value exceeds IN value)
        "customer_name": "...", "notes": "...", "document_number": "..."
    }
    """
    try:
        exchange_request = parse_exchange(request.get_json(silent=True))
        exchange = exchange_service.create_exchange(exchange_request, g.current_user)
        return jsonify(exchange.to_dict()), 201

    except ServiceError as e:
        current_app.logger.warning("%s %s -> %s: %s", request.method, request.path, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create exchange")
        return jsonify({"error": "Internal server error"}), 500
