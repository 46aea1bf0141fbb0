# Overview: Flask API route for checkout; parses the cart and returns the order.

from dataclasses import replace

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_capability
from ..errors import ServiceError, ValidationError
from ..extensions import db
from ..schemas import parse_checkout
from ..services import checkout_service


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@checkout_bp.post("")
@require_auth
@require_capability("CHECKOUT")
def checkout_route():
    """
    Complete a sale.

    Request body:
    {
        "items": [{"product_id": 1, "size": "M", "quantity": 2}],
        "payments": [{"method": "PIX", "amount_cents": 9980}],
        "discount_cents": 0,              (elevated roles only)
        "client_id": 3, "pay_later": true, (elevated roles only)
        "idempotency_key": "..."          (optional; or Idempotency-Key header)
    }

    Returns 201 with the order, or 200 with the stored order when an
    idempotency key is replayed.
    """
    try:
        checkout_request = parse_checkout(request.get_json(silent=True))
        header_key = (request.headers.get("Idempotency-Key") or "").strip()
        if header_key and not checkout_request.idempotency_key:
            checkout_request = replace(checkout_request, idempotency_key=header_key[:128])
        if current_app.config.get("IDEMPOTENCY_REQUIRED") and not checkout_request.idempotency_key:
            raise ValidationError("idempotency_key is required")

        result = checkout_service.process_checkout(checkout_request, g.current_user)
        return jsonify(result.order), (200 if result.replayed else 201)

    except ServiceError as e:
        current_app.logger.warning("%s %s -> %s: %s", request.method, request.path, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to process checkout")
        return jsonify({"error": "Internal server error"}), 500
