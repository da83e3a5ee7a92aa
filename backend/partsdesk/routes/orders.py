# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/partsdesk/routes/orders.py
"""Order API routes with role and scope enforcement"""

from flask import Blueprint, request, jsonify, g

from ..services import order_service
from ..services.lifecycle_service import STATUS_CHANGE_ROLES, next_statuses
from ..decorators import require_auth, require_roles
from partsdesk.permissions import CREATE_ORDERS, roles_with
from .errors import json_error


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_FILTERS = ("status", "urgent", "retailer_id", "branch", "start_date", "end_date")


def _order_detail(order) -> dict:
    data = order.to_dict(include_items=True)
    data["next_statuses"] = sorted(status.value for status in next_statuses(order.to_state()))
    return data


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    Scoped order list, newest first.

    Query: status, urgent, retailer_id, branch, start_date, end_date, page, limit
    """
    try:
        filters = {name: request.args.get(name) for name in ORDER_FILTERS}
        orders, pagination = order_service.list_orders(
            g.actor,
            filters,
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return jsonify({
            "orders": [order.to_dict() for order in orders],
            "pagination": pagination,
        }), 200
    except Exception as e:
        return json_error(e, action="list orders")


@orders_bp.post("")
@require_auth
@require_roles(*roles_with(CREATE_ORDERS))
def create_order_route():
    """
    Place an order.

    Available to: admin, manager, storeman, salesman
    Body: retailer_id, items[{part_number, quantity, mrp?, *_discount?, urgent?}],
          store_code?, po_number?, po_date?, urgent?, remark?
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_order(
            g.actor,
            data.get("retailer_id"),
            data.get("items"),
            store_code=data.get("store_code"),
            po_number=data.get("po_number"),
            po_date=data.get("po_date"),
            urgent=data.get("urgent", False),
            remark=data.get("remark"),
            user_id=g.current_user.id,
        )
        return jsonify({"order": _order_detail(order)}), 201
    except Exception as e:
        return json_error(e, action="create order")


@orders_bp.get("/stats/summary")
@require_auth
def order_stats_route():
    try:
        return jsonify(order_service.order_stats(g.actor)), 200
    except Exception as e:
        return json_error(e, action="load order stats")


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    """Order with items and the statuses it may move to next."""
    try:
        order = order_service.get_order_for_actor(g.actor, order_id, user_id=g.current_user.id)
        return jsonify({"order": _order_detail(order)}), 200
    except Exception as e:
        return json_error(e, action="load order")


@orders_bp.patch("/<int:order_id>/status")
@require_auth
@require_roles(*STATUS_CHANGE_ROLES)
def change_status_route(order_id: int):
    """
    Move an order to a new status.

    Available to: admin, manager, storeman
    Body: status, notes?

    Errors:
    - 400 INVALID_TRANSITION
    - 409 ITEMS_NOT_PICKED / STATUS_CONFLICT
    - 503 PERSISTENCE_FAILED (retryable, order unchanged)
    """
    try:
        data = request.get_json(silent=True) or {}
        target = data.get("status")
        if not target:
            return jsonify({"error": "status required", "code": "VALIDATION_ERROR"}), 400

        order = order_service.change_order_status(
            g.actor,
            order_id,
            target,
            data.get("notes") or "",
            user=g.current_user,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"order": _order_detail(order)}), 200
    except Exception as e:
        return json_error(e, action="change order status")


@orders_bp.patch("/<int:order_id>/items/<int:item_id>")
@require_auth
@require_roles(*STATUS_CHANGE_ROLES)
def pick_item_route(order_id: int, item_id: int):
    """
    Mark an item picked or unpicked.

    Body: picked (bool)
    """
    try:
        data = request.get_json(silent=True) or {}
        if "picked" not in data:
            return jsonify({"error": "picked required", "code": "VALIDATION_ERROR"}), 400

        item = order_service.set_item_picked(
            g.actor, order_id, item_id, data["picked"], user=g.current_user
        )
        return jsonify({"item": item.to_dict()}), 200
    except Exception as e:
        return json_error(e, action="update order item")
