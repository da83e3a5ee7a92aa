# Overview: Flask API routes for retailer operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..services import retailer_service
from ..decorators import require_auth, require_roles
from ..validation import coerce_bool
from partsdesk.permissions import MANAGE_RETAILERS, roles_with
from .errors import json_error


retailers_bp = Blueprint("retailers", __name__, url_prefix="/api/retailers")


@retailers_bp.get("")
@require_auth
def list_retailers_route():
    """Retailers in scope. Query: store_code, active_only."""
    try:
        active_only = request.args.get("active_only")
        retailers = retailer_service.list_retailers(
            g.actor,
            store_code=request.args.get("store_code"),
            active_only=coerce_bool("active_only", active_only) if active_only else False,
        )
        return jsonify({"retailers": [retailer.to_dict() for retailer in retailers]}), 200
    except Exception as e:
        return json_error(e, action="list retailers")


@retailers_bp.post("")
@require_auth
@require_roles(*roles_with(MANAGE_RETAILERS))
def create_retailer_route():
    try:
        data = request.get_json(silent=True) or {}
        retailer = retailer_service.create_retailer(g.actor, data, user_id=g.current_user.id)
        return jsonify({"retailer": retailer.to_dict()}), 201
    except Exception as e:
        return json_error(e, action="create retailer")


@retailers_bp.get("/<int:retailer_id>")
@require_auth
def get_retailer_route(retailer_id: int):
    try:
        retailer = retailer_service.get_retailer(g.actor, retailer_id, user_id=g.current_user.id)
        return jsonify({"retailer": retailer.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="load retailer")


@retailers_bp.put("/<int:retailer_id>")
@require_auth
@require_roles(*roles_with(MANAGE_RETAILERS))
def update_retailer_route(retailer_id: int):
    """Partial update of a retailer whose home store is in scope."""
    try:
        data = request.get_json(silent=True) or {}
        retailer = retailer_service.update_retailer(g.actor, retailer_id, data, user_id=g.current_user.id)
        return jsonify({"retailer": retailer.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="update retailer")


@retailers_bp.patch("/<int:retailer_id>/confirm")
@require_auth
@require_roles(*roles_with(MANAGE_RETAILERS))
def confirm_retailer_route(retailer_id: int):
    try:
        retailer = retailer_service.confirm_retailer(g.actor, retailer_id, user_id=g.current_user.id)
        return jsonify({"retailer": retailer.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="confirm retailer")


@retailers_bp.patch("/<int:retailer_id>/status")
@require_auth
@require_roles(*roles_with(MANAGE_RETAILERS))
def retailer_status_route(retailer_id: int):
    """
    Activate or deactivate a retailer.

    Body: is_active (bool)
    """
    try:
        data = request.get_json(silent=True) or {}
        if "is_active" not in data:
            return jsonify({"error": "is_active required", "code": "VALIDATION_ERROR"}), 400

        retailer = retailer_service.set_retailer_active(
            g.actor, retailer_id, data["is_active"], user_id=g.current_user.id
        )
        return jsonify({"retailer": retailer.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="update retailer status")


@retailers_bp.get("/stats/summary")
@require_auth
def retailer_stats_route():
    try:
        return jsonify(retailer_service.retailer_stats(g.actor)), 200
    except Exception as e:
        return json_error(e, action="load retailer stats")
