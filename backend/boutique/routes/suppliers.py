# Overview: Flask API routes for suppliers.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_capability
from ..services import catalog_service


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_capability("MANAGE_SUPPLIERS")
def list_suppliers_route():
    return jsonify({"suppliers": [s.to_dict() for s in catalog_service.list_suppliers()]}), 200


@suppliers_bp.post("")
@require_auth
@require_capability("MANAGE_SUPPLIERS")
def create_supplier_route():
    supplier = catalog_service.create_supplier(request.get_json(silent=True) or {})
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_capability("MANAGE_SUPPLIERS")
def get_supplier_route(supplier_id: int):
    return jsonify(catalog_service.get_supplier(supplier_id).to_dict()), 200


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_capability("MANAGE_SUPPLIERS")
def update_supplier_route(supplier_id: int):
    supplier = catalog_service.update_supplier(supplier_id, request.get_json(silent=True) or {})
    return jsonify(supplier.to_dict()), 200


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_capability("MANAGE_SUPPLIERS")
def delete_supplier_route(supplier_id: int):
    catalog_service.delete_supplier(supplier_id)
    return jsonify({"ok": True}), 200
