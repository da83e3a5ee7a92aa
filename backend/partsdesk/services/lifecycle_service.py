# Overview: Order status state machine; pure decision logic with no database access.

"""
PartsDesk Order Lifecycle

================================================================================
PURPOSE: Decide whether an order may move from its current status to a target
         status, and produce the resulting order value if it may.
================================================================================

STATE MACHINE:

    New        -> Pending, Hold, Cancelled
    Pending    -> Processing, Hold, Cancelled
    Processing -> Picked, Hold, Cancelled
    Hold       -> New, Pending, Processing, Picked, Dispatched, Cancelled
    Picked     -> Dispatched, Hold
    Dispatched -> Completed
    Completed  -> (terminal)
    Cancelled  -> (terminal)

GUARD:
    Processing -> Picked additionally requires every item to be picked.

RULES:
1. transition() never raises and never mutates its input. It returns a
   TransitionResult holding either the proposed OrderState or a rejection.
2. Exactly one history entry is appended per successful transition, and its
   timestamp is never earlier than the previous entry's.
3. notes overwrite the order remark only when non-empty.
4. The proposal is not committed anywhere. order_service persists it and only
   then does the change become visible.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from partsdesk.permissions.roles import Role, CHANGE_ORDER_STATUS, roles_with
from partsdesk.time_utils import utcnow


class OrderStatus(str, Enum):
    NEW = "New"
    PENDING = "Pending"
    PROCESSING = "Processing"
    HOLD = "Hold"
    PICKED = "Picked"
    DISPATCHED = "Dispatched"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, value: Any) -> "OrderStatus | None":
        if isinstance(value, OrderStatus):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Single source of truth for legal transitions (the broader Hold row)
ORDER_STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NEW: frozenset({OrderStatus.PENDING, OrderStatus.HOLD, OrderStatus.CANCELLED}),
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.HOLD, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.PICKED, OrderStatus.HOLD, OrderStatus.CANCELLED}),
    OrderStatus.HOLD: frozenset({
        OrderStatus.NEW,
        OrderStatus.PENDING,
        OrderStatus.PROCESSING,
        OrderStatus.PICKED,
        OrderStatus.DISPATCHED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PICKED: frozenset({OrderStatus.DISPATCHED, OrderStatus.HOLD}),
    OrderStatus.DISPATCHED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

STATUS_CHANGE_ROLES = roles_with(CHANGE_ORDER_STATUS)


# -- VALUES --

@dataclass(frozen=True)
class ItemState:
    part_number: str
    quantity: int
    unit_price: float = 0
    basic_discount: float = 0
    scheme_discount: float = 0
    additional_discount: float = 0
    picked: bool = False
    item_id: int | None = None


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: OrderStatus
    timestamp: datetime
    actor_role: Role
    notes: str = ""
    previous_status: OrderStatus | None = None


@dataclass(frozen=True)
class OrderState:
    """Snapshot of the parts of an order the lifecycle reads and writes."""
    id: int | None
    status: OrderStatus
    items: tuple[ItemState, ...] = ()
    urgent: bool = False
    remark: str | None = None
    status_history: tuple[StatusHistoryEntry, ...] = ()

    def unpicked_items(self) -> tuple[ItemState, ...]:
        return tuple(item for item in self.items if not item.picked)


# -- REJECTIONS --

@dataclass(frozen=True)
class TransitionError:
    """Base for lifecycle rejections. code is stable for API clients."""
    code = "TRANSITION_ERROR"

    @property
    def message(self) -> str:
        return "Status change rejected"


@dataclass(frozen=True)
class InvalidTransition(TransitionError):
    source: str
    target: str
    code = "INVALID_TRANSITION"

    @property
    def message(self) -> str:
        return f"Cannot change status from '{self.source}' to '{self.target}'"


@dataclass(frozen=True)
class ItemsNotPicked(TransitionError):
    unpicked_parts: tuple[str, ...] = field(default_factory=tuple)
    code = "ITEMS_NOT_PICKED"

    @property
    def message(self) -> str:
        count = len(self.unpicked_parts)
        return f"All items must be picked before marking the order Picked ({count} unpicked)"


@dataclass(frozen=True)
class Unauthorized(TransitionError):
    role: str
    code = "UNAUTHORIZED"

    @property
    def message(self) -> str:
        return f"Role '{self.role}' may not change order status"


@dataclass(frozen=True)
class TransitionResult:
    order: OrderState | None = None
    error: TransitionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# -- QUERIES --

def allowed_targets(status: Any) -> frozenset[OrderStatus]:
    parsed = OrderStatus.parse(status)
    if parsed is None:
        return frozenset()
    return ORDER_STATUS_TRANSITIONS[parsed]


def next_statuses(order: OrderState) -> frozenset[OrderStatus]:
    """
    Statuses an order may move to next.

    Empty for terminal orders, which is how the status-change control is hidden.
    """
    return allowed_targets(order.status)


def can_transition(from_status: Any, to_status: Any) -> bool:
    target = OrderStatus.parse(to_status)
    return target is not None and target in allowed_targets(from_status)


def is_terminal(status: Any) -> bool:
    return OrderStatus.parse(status) in TERMINAL_STATUSES


# -- TRANSITION --

def transition(
    order: OrderState,
    target: Any,
    actor_role: Any,
    notes: str | None = "",
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """
    Validate and compute a status change.

    Checks, in order:
    1. actor_role may change status at all        -> Unauthorized
    2. target is in the row for order.status      -> InvalidTransition
    3. Processing -> Picked with unpicked items   -> ItemsNotPicked

    Returns a TransitionResult with the proposed OrderState on success.
    """
    role = Role.parse(actor_role)
    if role is None or role not in STATUS_CHANGE_ROLES:
        return TransitionResult(error=Unauthorized(role=str(getattr(actor_role, "value", actor_role))))

    source = OrderStatus.parse(order.status)
    parsed_target = OrderStatus.parse(target)
    if source is None or parsed_target is None or parsed_target not in ORDER_STATUS_TRANSITIONS[source]:
        return TransitionResult(error=InvalidTransition(
            source=str(getattr(order.status, "value", order.status)),
            target=str(getattr(target, "value", target)),
        ))

    if source is OrderStatus.PROCESSING and parsed_target is OrderStatus.PICKED:
        unpicked = order.unpicked_items()
        if unpicked:
            return TransitionResult(error=ItemsNotPicked(
                unpicked_parts=tuple(item.part_number for item in unpicked)
            ))

    timestamp = now or utcnow()
    if order.status_history:
        timestamp = max(timestamp, order.status_history[-1].timestamp)

    notes = notes or ""
    entry = StatusHistoryEntry(
        status=parsed_target,
        timestamp=timestamp,
        actor_role=role,
        notes=notes,
        previous_status=source,
    )

    proposed = replace(
        order,
        status=parsed_target,
        remark=notes if notes else order.remark,
        status_history=order.status_history + (entry,),
    )
    return TransitionResult(order=proposed)
