# Overview: Flask API routes for order status history; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import order_service
from ..decorators import require_auth, require_roles
from partsdesk.permissions import VIEW_REPORTS, roles_with
from .errors import json_error


history_bp = Blueprint("order_status_history", __name__, url_prefix="/api/order-status-history")


@history_bp.get("/stats/summary")
@require_auth
@require_roles(*roles_with(VIEW_REPORTS))
def history_stats_route():
    """
    Status-change counts for orders in scope.

    Query: days (default 30, max 365)
    """
    try:
        stats = order_service.status_history_stats(
            g.actor, request.args.get("days"), user_id=g.current_user.id
        )
        return jsonify(stats), 200
    except Exception as e:
        return json_error(e, action="load status history stats")


@history_bp.get("/<int:order_id>")
@require_auth
def order_history_route(order_id: int):
    """Status history of one order, oldest first."""
    try:
        entries = order_service.status_history(g.actor, order_id, user_id=g.current_user.id)
        return jsonify({
            "order_id": order_id,
            "history": [entry.to_dict() for entry in entries],
        }), 200
    except Exception as e:
        return json_error(e, action="load status history")
