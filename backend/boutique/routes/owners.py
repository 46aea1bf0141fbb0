# Overview: Flask API routes for consignment owners.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_capability
from ..services import catalog_service


owners_bp = Blueprint("owners", __name__, url_prefix="/api/owners")


@owners_bp.get("")
@require_auth
@require_capability("VIEW_CATALOG")
def list_owners_route():
    return jsonify({"owners": [o.to_dict() for o in catalog_service.list_owners()]}), 200


@owners_bp.post("")
@require_auth
@require_capability("MANAGE_OWNERS")
def create_owner_route():
    data = request.get_json(silent=True) or {}
    owner = catalog_service.create_owner(data.get("name"))
    return jsonify(owner.to_dict()), 201
