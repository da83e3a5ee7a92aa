# Overview: Flask API routes for the parts catalogue; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..services import parts_service
from ..decorators import require_auth, require_roles
from partsdesk.permissions import MANAGE_INVENTORY, roles_with
from .errors import json_error


parts_bp = Blueprint("parts", __name__, url_prefix="/api/parts")


@parts_bp.get("")
@require_auth
def list_parts_route():
    """
    Catalogue listing.

    Query: search, category, page, per_page
    """
    try:
        result = parts_service.list_parts(
            search=request.args.get("search"),
            category=request.args.get("category"),
            page=request.args.get("page"),
            per_page=request.args.get("per_page"),
        )
        return jsonify(result), 200
    except Exception as e:
        return json_error(e, action="list parts")


@parts_bp.get("/<part_number>")
@require_auth
def get_part_route(part_number: str):
    part = parts_service.get_part(part_number)
    if not part:
        return jsonify({"error": "Part not found", "code": "NOT_FOUND"}), 404
    return jsonify({"part": part.to_dict()}), 200


def _part_not_found():
    return jsonify({"error": "Part not found", "code": "NOT_FOUND"}), 404


@parts_bp.post("")
@require_auth
@require_roles(*roles_with(MANAGE_INVENTORY))
def create_part_route():
    try:
        data = request.get_json(silent=True) or {}
        part = parts_service.create_part(g.actor, data, user_id=g.current_user.id)
        return jsonify({"part": part.to_dict()}), 201
    except Exception as e:
        return json_error(e, action="create part")


@parts_bp.put("/<part_number>")
@require_auth
@require_roles(*roles_with(MANAGE_INVENTORY))
def update_part_route(part_number: str):
    try:
        data = request.get_json(silent=True) or {}
        part = parts_service.update_part(g.actor, part_number, data, user_id=g.current_user.id)
        if part is None:
            return _part_not_found()
        return jsonify({"part": part.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="update part")


@parts_bp.patch("/<part_number>/stock")
@require_auth
@require_roles(*roles_with(MANAGE_INVENTORY))
def update_stock_route(part_number: str):
    """
    Set the on-hand quantity.

    Body: stock_qty (int >= 0)
    """
    try:
        data = request.get_json(silent=True) or {}
        if "stock_qty" not in data:
            return jsonify({"error": "stock_qty required", "code": "VALIDATION_ERROR"}), 400

        part = parts_service.set_stock(g.actor, part_number, data["stock_qty"], user_id=g.current_user.id)
        if part is None:
            return _part_not_found()
        return jsonify({"part": part.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="update stock")


@parts_bp.get("/meta/categories")
@require_auth
def list_categories_route():
    try:
        return jsonify({"categories": parts_service.list_categories()}), 200
    except Exception as e:
        return json_error(e, action="list part categories")


@parts_bp.get("/alerts/low-stock")
@require_auth
@require_roles(*roles_with(MANAGE_INVENTORY))
def low_stock_route():
    try:
        parts = parts_service.low_stock_parts(g.actor, user_id=g.current_user.id)
        return jsonify({"parts": [part.to_dict() for part in parts], "count": len(parts)}), 200
    except Exception as e:
        return json_error(e, action="list low-stock parts")
