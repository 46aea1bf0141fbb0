# Overview: Flask API routes for the product catalog.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_capability
from ..permissions import owner_scope
from ..services import catalog_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_capability("VIEW_CATALOG")
def list_products_route():
    """All products; OWNER users linked to an owner see only their own."""
    products = catalog_service.list_products(owner_id=owner_scope(g.current_user))
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_capability("VIEW_CATALOG")
def get_product_route(product_id: int):
    product = catalog_service.get_product(product_id, owner_id=owner_scope(g.current_user))
    return jsonify(product.to_dict()), 200


@products_bp.post("")
@require_auth
@require_capability("MANAGE_CATALOG")
def create_product_route():
    """
    Request body:
    {
        "name": "Linen dress", "sku": "DR-001",
        "cost_cents": 4000, "price_cents": 9990,
        "owner_id": 1, "plus_sized": false,
        "sizes": [{"size": "M", "stock": 3}]   (or "stock": 5 without sizes)
    }
    """
    product = catalog_service.create_product(request.get_json(silent=True) or {})
    return jsonify(product.to_dict()), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_capability("MANAGE_CATALOG")
def update_product_route(product_id: int):
    product = catalog_service.update_product(product_id, request.get_json(silent=True) or {})
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_capability("MANAGE_CATALOG")
def delete_product_route(product_id: int):
    catalog_service.delete_product(product_id)
    return jsonify({"ok": True}), 200
