# Overview: Flask API routes for order history.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_capability
from ..errors import ValidationError
from ..services import order_service
from ..time_utils import parse_iso_date


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")


@orders_bp.get("")
@require_auth
@require_capability("VIEW_ORDERS")
def list_orders_route():
    """Query params: start_date, end_date (YYYY-MM-DD, inclusive)."""
    orders = order_service.list_orders(_date_arg("start_date"), _date_arg("end_date"))
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
@require_capability("VIEW_ORDERS")
def get_order_route(order_id: int):
    return jsonify(order_service.get_order(order_id).to_dict()), 200
