# Overview: Flask API routes for store settings.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_capability
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    return jsonify(settings_service.get_settings().to_dict()), 200


@settings_bp.put("")
@require_auth
@require_capability("MANAGE_SETTINGS")
def update_settings_route():
    settings = settings_service.update_settings(request.get_json(silent=True) or {}, actor=g.current_user)
    return jsonify(settings.to_dict()), 200
