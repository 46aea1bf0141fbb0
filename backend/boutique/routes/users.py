# Overview: Flask API routes for back-office user administration.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_capability
from ..errors import ValidationError
from ..services import auth_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_capability("MANAGE_USERS")
def list_users_route():
    return jsonify({"users": [u.to_dict() for u in auth_service.list_users()]}), 200


@users_bp.post("")
@require_auth
@require_capability("MANAGE_USERS")
def create_user_route():
    """
    Request body:
    {"email", "password", "name", "role": "ADMIN|OWNER|CASHIER", "owner_id"?}

    Password must be 8+ chars with upper, lower, digit and special char.
    """
    data = request.get_json(silent=True) or {}
    owner_id = data.get("owner_id")
    if owner_id in (None, ""):
        owner_id = None
    else:
        try:
            owner_id = int(owner_id)
        except (TypeError, ValueError):
            raise ValidationError("owner_id must be an integer")

    user = auth_service.create_user(
        email=data.get("email"),
        password=data.get("password"),
        name=data.get("name"),
        role=data.get("role"),
        owner_id=owner_id,
    )
    return jsonify(user.to_dict()), 201
