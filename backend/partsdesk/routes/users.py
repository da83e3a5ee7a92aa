# Overview: Flask API routes for user administration; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..services import user_service
from ..decorators import require_auth, require_roles
from partsdesk.permissions import MANAGE_USERS, Role, roles_with
from .errors import json_error


users_bp = Blueprint("users", __name__, url_prefix="/api/users")

USER_ADMIN_ROLES = roles_with(MANAGE_USERS)


@users_bp.get("")
@require_auth
@require_roles(*USER_ADMIN_ROLES)
def list_users_route():
    """
    Users the caller may manage.

    Query: search, role, company_id, store_id, is_active, page, limit
    """
    try:
        result = user_service.list_users(g.actor, request.args.to_dict(), user_id=g.current_user.id)
        return jsonify(result), 200
    except Exception as e:
        return json_error(e, action="list users")


@users_bp.post("")
@require_auth
@require_roles(*USER_ADMIN_ROLES)
def create_user_route():
    """
    Create a user.

    Available to: super_admin (any), admin (own company), manager (storeman
    and salesman of own store)
    Body: name, email, password, role, company_id?, store_id?, retailer_id?
    """
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.create_user(g.actor, data, user_id=g.current_user.id)
        return jsonify({"user": user.to_dict()}), 201
    except Exception as e:
        return json_error(e, action="create user")


@users_bp.get("/stats/summary")
@require_auth
@require_roles(Role.SUPER_ADMIN, Role.ADMIN)
def user_stats_route():
    try:
        return jsonify(user_service.user_stats(g.actor, user_id=g.current_user.id)), 200
    except Exception as e:
        return json_error(e, action="load user stats")


@users_bp.get("/<int:target_id>")
@require_auth
@require_roles(*USER_ADMIN_ROLES)
def get_user_route(target_id: int):
    try:
        user = user_service.get_user(g.actor, target_id, user_id=g.current_user.id)
        return jsonify({"user": user.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="load user")


@users_bp.put("/<int:target_id>")
@require_auth
@require_roles(*USER_ADMIN_ROLES)
def update_user_route(target_id: int):
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.update_user(g.actor, target_id, data, user_id=g.current_user.id)
        return jsonify({"user": user.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="update user")


@users_bp.patch("/<int:target_id>/status")
@require_auth
@require_roles(*USER_ADMIN_ROLES)
def user_status_route(target_id: int):
    """
    Activate or deactivate a user. Deactivation signs them out everywhere.

    Body: is_active (bool)
    """
    try:
        data = request.get_json(silent=True) or {}
        if "is_active" not in data:
            return jsonify({"error": "is_active required", "code": "VALIDATION_ERROR"}), 400

        user = user_service.set_user_status(g.actor, target_id, data["is_active"], user_id=g.current_user.id)
        return jsonify({"user": user.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="update user status")
