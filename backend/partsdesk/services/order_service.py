# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Service

================================================================================
PURPOSE: Create, read and move orders through their lifecycle within the
         caller's scope.
================================================================================

STATUS CHANGES ARE TWO-PHASE:
    1. lifecycle_service.transition() computes a proposal from an immutable
       snapshot of the order. Nothing is written.
    2. The proposal is persisted under a row lock with bounded retry. If the
       stored status moved since the snapshot, the change is refused with
       OrderConflictError. The lifecycle is asked again against the locked
       order and its items, so a line unpicked in between still blocks
       Picked. If the database keeps failing, the session is rolled back
       and OrderPersistenceError is raised.

    The order is only changed for other readers once step 2 commits, so a
    failed persist leaves the visible order exactly as it was.

RULES:
1. Every read goes through scope_service; an out-of-scope order is refused,
   not hidden behind a 404.
2. One OrderStatusHistory row per committed status change, same transaction.
3. Stage columns record who confirmed (Processing), picked (Picked),
   packed (Dispatched) and delivered (Completed) the order.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from flask import current_app
from sqlalchemy import distinct, func

from ..extensions import db
from ..models import Order, OrderItem, OrderStatusHistory, Part, User
from partsdesk.permissions import Actor, CREATE_ORDERS, VIEW_REPORTS, roles_with
from partsdesk.time_utils import utcnow, epoch_millis, is_date_only
from partsdesk.validation import (
    ValidationError,
    ConflictError,
    MAX_MRP,
    coerce_int,
    coerce_bool,
    coerce_datetime,
    coerce_discount,
    coerce_text,
)
from .concurrency import RETRYABLE_ERRORS, lock_for_update, run_with_retry
from .lifecycle_service import (
    OrderStatus,
    TransitionError,
    STATUS_CHANGE_ROLES,
    is_terminal,
    transition,
)
from .permission_service import require_role
from . import scope_service


class OrderNotFound(Exception):
    def __init__(self, message: str = "Order not found"):
        super().__init__(message)


class OrderTransitionError(Exception):
    """Carries the lifecycle rejection (InvalidTransition, ItemsNotPicked, Unauthorized)."""

    def __init__(self, error: TransitionError):
        self.error = error
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code


class OrderConflictError(Exception):
    """The stored status changed between proposal and persist."""
    pass


class OrderPersistenceError(Exception):
    """
    The status change could not be written after all retries.

    Transient: the caller may retry the same request.
    """
    retryable = True


# Status reached -> (by column, at column)
STAGE_COLUMNS: dict[OrderStatus, tuple[str, str]] = {
    OrderStatus.PROCESSING: ("confirmed_by", "confirmed_at"),
    OrderStatus.PICKED: ("picked_by", "picked_at"),
    OrderStatus.DISPATCHED: ("packed_by", "packed_at"),
    OrderStatus.COMPLETED: ("delivered_by", "delivered_at"),
}

# Picking is finished; lines may not be unpicked
PICKING_DONE_STATUSES = frozenset({OrderStatus.PICKED, OrderStatus.DISPATCHED})


def _user_label(user: User | None, actor: Actor) -> str:
    if user is not None:
        return user.name
    return actor.role.value


# -- CREATE --

def _next_crm_order_id() -> str:
    """
    CRM-<year>-<last six digits of epoch millis>.

    Bumps the millisecond value until the id is unused, so two orders placed
    in the same millisecond still get distinct ids.
    """
    now = utcnow()
    millis = epoch_millis(now)
    while True:
        candidate = f"CRM-{now.year}-{str(millis)[-6:]}"
        taken = db.session.query(Order.id).filter_by(crm_order_id=candidate).first()
        if taken is None:
            return candidate
        millis += 1


def _build_item(line_no: int, raw: Any, default_urgent: bool) -> OrderItem:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{line_no - 1}] must be an object")

    part_number = coerce_text(f"items[{line_no - 1}].part_number", raw.get("part_number"))
    if not part_number:
        raise ValidationError(f"items[{line_no - 1}].part_number is required")

    part = db.session.get(Part, part_number)
    if part is None or not part.is_active:
        raise ValidationError(f"Part '{part_number}' not found")

    quantity = coerce_int(f"items[{line_no - 1}].quantity", raw.get("quantity"), minimum=1)

    mrp = raw.get("mrp")
    mrp = part.price if mrp in (None, "") else coerce_int(
        f"items[{line_no - 1}].mrp", mrp, minimum=0, maximum=MAX_MRP
    )

    discounts = {}
    for name in ("basic_discount", "scheme_discount", "additional_discount"):
        value = raw.get(name)
        discounts[name] = float(getattr(part, name) or 0) if value in (None, "") else coerce_discount(
            f"items[{line_no - 1}].{name}", value
        )

    total_discount = sum(discounts.values())
    if total_discount > 100:
        raise ValidationError(f"items[{line_no - 1}] total discount exceeds 100%")

    item_amount = round(mrp * quantity * (1 - total_discount / 100))

    urgent = raw.get("urgent")
    urgent = default_urgent if urgent is None else coerce_bool(f"items[{line_no - 1}].urgent", urgent)

    return OrderItem(
        line_no=line_no,
        part_number=part.part_number,
        quantity=quantity,
        mrp=mrp,
        item_amount=item_amount,
        urgent=urgent,
        picked=False,
        **discounts,
    )


def create_order(
    actor: Actor,
    retailer_id: Any,
    items: Any,
    *,
    store_code: str | None = None,
    po_number: str | None = None,
    po_date: str | None = None,
    urgent: Any = False,
    remark: str | None = None,
    user_id: int | None = None,
) -> Order:
    """
    Place a new order in status New.

    Store-bound actors default to their own store; other roles must name
    one. Both the store and the retailer must be within the actor's scope.
    """
    require_role(actor, roles_with(CREATE_ORDERS), action="create_order", user_id=user_id)

    code = store_code or actor.store_id
    if not code:
        raise ValidationError("store_code is required")
    store = scope_service.require_store_access(actor, code, user_id=user_id)

    if retailer_id in (None, ""):
        raise ValidationError("retailer_id is required")
    retailer = scope_service.require_retailer_access(
        actor, coerce_int("retailer_id", retailer_id, minimum=1), user_id=user_id
    )
    if not retailer.is_active:
        raise ValidationError("Retailer is inactive")

    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    urgent = coerce_bool("urgent", urgent) if urgent is not None else False

    order = Order(
        crm_order_id=_next_crm_order_id(),
        retailer_id=retailer.id,
        store_code=store.code,
        status=OrderStatus.NEW.value,
        urgent=urgent,
        remark=coerce_text("remark", remark) or None,
        po_number=coerce_text("po_number", po_number) or None,
        po_date=coerce_datetime("po_date", po_date),
        placed_by_user_id=user_id,
        placed_at=utcnow(),
    )
    order.items = [_build_item(index, raw, urgent) for index, raw in enumerate(items, start=1)]

    db.session.add(order)
    db.session.commit()

    current_app.logger.info(
        "Order %s created at %s for retailer %s (%d items)",
        order.crm_order_id, order.store_code, order.retailer_id, len(order.items),
    )
    return order


# -- READ --

def get_order_for_actor(actor: Actor, order_id: int, *, user_id: int | None = None) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise OrderNotFound()
    return scope_service.require_order_access(actor, order, user_id=user_id)


def _end_of_range(raw: str | None):
    end = coerce_datetime("end_date", raw)
    if end is not None and is_date_only(raw):
        # Date-only end bound includes the whole day
        end = end + timedelta(days=1)
    return end


def list_orders(
    actor: Actor,
    filters: dict | None = None,
    page: Any = 1,
    limit: Any = None,
) -> tuple[list[Order], dict]:
    """
    Scoped order listing, newest first.

    Filters: status, urgent, retailer_id, branch (store code), start_date,
    end_date (ISO dates; a date-only end_date is inclusive).

    Returns (orders, pagination).
    """
    filters = filters or {}
    config = current_app.config

    page = coerce_int("page", page if page not in (None, "") else 1, minimum=1)
    limit = coerce_int(
        "limit",
        limit if limit not in (None, "") else config["DEFAULT_PAGE_SIZE"],
        minimum=1,
        maximum=config["MAX_PAGE_SIZE"],
    )

    query = scope_service.scoped_orders_query(actor)

    status = filters.get("status")
    if status:
        parsed = OrderStatus.parse(status)
        if parsed is None:
            raise ValidationError(f"Unknown status '{status}'")
        query = query.filter(Order.status == parsed.value)

    if filters.get("urgent") not in (None, ""):
        query = query.filter(Order.urgent == coerce_bool("urgent", filters["urgent"]))

    if filters.get("retailer_id") not in (None, ""):
        query = query.filter(Order.retailer_id == coerce_int("retailer_id", filters["retailer_id"]))

    if filters.get("branch"):
        query = query.filter(Order.store_code == filters["branch"])

    start = coerce_datetime("start_date", filters.get("start_date"))
    if start is not None:
        query = query.filter(Order.placed_at >= start)

    end = _end_of_range(filters.get("end_date"))
    if end is not None:
        query = query.filter(Order.placed_at < end)

    total = query.count()
    orders = (
        query.order_by(Order.placed_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }
    return orders, pagination


def order_stats(actor: Actor) -> dict:
    query = scope_service.scoped_orders_query(actor)

    def _count(*criteria) -> int:
        return query.filter(*criteria).count()

    unique_retailers = query.with_entities(func.count(distinct(Order.retailer_id))).scalar() or 0

    return {
        "total_orders": _count(),
        "new_orders": _count(Order.status == OrderStatus.NEW.value),
        "processing_orders": _count(Order.status == OrderStatus.PROCESSING.value),
        "completed_orders": _count(Order.status == OrderStatus.COMPLETED.value),
        "urgent_orders": _count(Order.urgent.is_(True)),
        "unique_retailers": unique_retailers,
    }


# -- ITEMS --

def set_item_picked(
    actor: Actor,
    order_id: int,
    item_id: int,
    picked: Any,
    *,
    user: User | None = None,
) -> OrderItem:
    """
    Mark an order line picked or unpicked.

    Allowed for the status-change roles on any non-terminal order. Once an
    order is Picked or Dispatched its lines can no longer be unpicked.
    """
    user_id = user.id if user else None
    require_role(actor, STATUS_CHANGE_ROLES, action="pick_item", user_id=user_id)
    order = get_order_for_actor(actor, order_id, user_id=user_id)

    if is_terminal(order.status):
        raise ConflictError(f"Order is {order.status}; items can no longer change")

    item = db.session.query(OrderItem).filter_by(order_id=order.id, id=item_id).first()
    if item is None:
        raise OrderNotFound("Order item not found")

    picked = coerce_bool("picked", picked)
    if not picked and OrderStatus(order.status) in PICKING_DONE_STATUSES:
        raise ConflictError(f"Order is {order.status}; items can no longer be unpicked")
    item.picked = picked
    item.picked_by = _user_label(user, actor) if picked else None
    item.picked_at = utcnow() if picked else None
    db.session.commit()
    return item


# -- STATUS --

def change_order_status(
    actor: Actor,
    order_id: int,
    target: Any,
    notes: str | None = "",
    *,
    user: User | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Order:
    """
    Move an order to target status.

    Raises:
        OrderNotFound, ScopeDenied: order missing or outside scope
        OrderTransitionError: lifecycle rejected the move
        OrderConflictError: someone else changed the status first
        OrderPersistenceError: database kept failing; nothing was changed
    """
    user_id = user.id if user else None
    notes = coerce_text("notes", notes)
    order = get_order_for_actor(actor, order_id, user_id=user_id)

    snapshot = order.to_state()
    result = transition(snapshot, target, actor.role, notes)
    if not result.ok:
        raise OrderTransitionError(result.error)

    def _op():
        locked = lock_for_update(
            db.session.query(Order).filter_by(id=order_id).populate_existing()
        ).first()
        if locked is None:
            raise OrderNotFound()
        if locked.status != snapshot.status.value:
            raise OrderConflictError(
                f"Order status changed to '{locked.status}' while this request was in flight"
            )
        # Item flags may have changed since the snapshot; decide again on what is stored now
        lock_for_update(
            db.session.query(OrderItem).filter_by(order_id=order_id).populate_existing()
        ).all()
        current = transition(locked.to_state(), target, actor.role, notes)
        if not current.ok:
            raise OrderTransitionError(current.error)

        proposed = current.order
        entry = proposed.status_history[-1]

        locked.status = proposed.status.value
        locked.remark = proposed.remark

        stage = STAGE_COLUMNS.get(proposed.status)
        if stage:
            by_column, at_column = stage
            setattr(locked, by_column, _user_label(user, actor))
            setattr(locked, at_column, entry.timestamp)

        db.session.add(OrderStatusHistory(
            order_id=locked.id,
            status=entry.status.value,
            previous_status=entry.previous_status.value if entry.previous_status else None,
            updated_by_user_id=user_id,
            updated_by_role=entry.actor_role.value,
            notes=entry.notes or None,
            occurred_at=entry.timestamp,
            ip_address=ip_address,
            user_agent=user_agent,
        ))
        db.session.commit()
        return locked

    config = current_app.config
    try:
        updated = run_with_retry(
            _op,
            attempts=max(1, int(config["ORDER_STATUS_RETRY_ATTEMPTS"])),
            backoff_base=float(config["ORDER_STATUS_RETRY_BACKOFF"]),
        )
    except RETRYABLE_ERRORS as exc:
        db.session.rollback()
        current_app.logger.error(
            "Order %s status change to %s could not be persisted: %s",
            order_id, result.order.status.value, exc,
        )
        raise OrderPersistenceError("Order status could not be saved; please retry") from exc
    except (OrderConflictError, OrderTransitionError, OrderNotFound):
        db.session.rollback()
        raise

    current_app.logger.info(
        "Order %s status %s -> %s by %s",
        updated.crm_order_id, snapshot.status.value, updated.status, actor.role.value,
    )
    return updated


# -- HISTORY --

def status_history(actor: Actor, order_id: int, *, user_id: int | None = None) -> list[OrderStatusHistory]:
    order = get_order_for_actor(actor, order_id, user_id=user_id)
    return list(order.history)


def status_history_stats(actor: Actor, days: Any = 30, *, user_id: int | None = None) -> dict:
    """
    Status-change counts over the last `days` days for orders in scope.

    Returns per-status counts and (previous -> status) transition counts.
    """
    require_role(actor, roles_with(VIEW_REPORTS), action="status_history_stats", user_id=user_id)
    days = coerce_int("days", days if days not in (None, "") else 30, minimum=1, maximum=365)
    cutoff = utcnow() - timedelta(days=days)

    order_ids = scope_service.scoped_orders_query(actor).with_entities(Order.id).scalar_subquery()
    base = db.session.query(OrderStatusHistory).filter(
        OrderStatusHistory.occurred_at >= cutoff,
        OrderStatusHistory.order_id.in_(order_ids),
    )

    by_status = {
        status: count
        for status, count in base.with_entities(
            OrderStatusHistory.status, func.count(OrderStatusHistory.id)
        ).group_by(OrderStatusHistory.status).all()
    }

    transitions = [
        {"from": previous, "to": status, "count": count}
        for previous, status, count in base.with_entities(
            OrderStatusHistory.previous_status,
            OrderStatusHistory.status,
            func.count(OrderStatusHistory.id),
        ).group_by(OrderStatusHistory.previous_status, OrderStatusHistory.status)
        .order_by(func.count(OrderStatusHistory.id).desc())
        .all()
    ]

    return {
        "days": days,
        "total_changes": sum(by_status.values()),
        "by_status": by_status,
        "transitions": transitions,
    }
