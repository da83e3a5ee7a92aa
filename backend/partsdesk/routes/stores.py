# Overview: Flask API routes for stores operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..services import store_service
from ..decorators import require_auth, require_roles
from partsdesk.permissions import Role
from .errors import json_error


stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
@require_auth
def list_stores_route():
    """Stores in scope. Query: company_id (optional narrowing)."""
    try:
        stores = store_service.list_stores(g.actor, company_id=request.args.get("company_id"))
        return jsonify({"stores": [store.to_dict() for store in stores]}), 200
    except Exception as e:
        return json_error(e, action="list stores")


@stores_bp.post("")
@require_auth
@require_roles(Role.SUPER_ADMIN, Role.ADMIN)
def create_store_route():
    """
    Create a branch.

    Available to: super_admin (any company), admin (own company)
    """
    try:
        data = request.get_json(silent=True) or {}
        store = store_service.create_store(g.actor, data, user_id=g.current_user.id)
        return jsonify({"store": store.to_dict()}), 201
    except Exception as e:
        return json_error(e, action="create store")


@stores_bp.get("/<code>")
@require_auth
def get_store_route(code: str):
    try:
        store = store_service.get_store(g.actor, code, user_id=g.current_user.id)
        return jsonify({"store": store.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="load store")


@stores_bp.put("/<code>")
@require_auth
@require_roles(Role.SUPER_ADMIN, Role.ADMIN)
def update_store_route(code: str):
    """
    Update branch details.

    Only super_admin may change company_id.
    """
    try:
        data = request.get_json(silent=True) or {}
        store = store_service.update_store(g.actor, code, data, user_id=g.current_user.id)
        return jsonify({"store": store.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="update store")


@stores_bp.delete("/<code>")
@require_auth
@require_roles(Role.SUPER_ADMIN, Role.ADMIN)
def delete_store_route(code: str):
    """Delete a branch with no orders, users or retailers."""
    try:
        store_service.delete_store(g.actor, code, user_id=g.current_user.id)
        return jsonify({"message": "Store deleted"}), 200
    except Exception as e:
        return json_error(e, action="delete store")
