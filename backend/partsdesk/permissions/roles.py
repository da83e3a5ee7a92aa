# Overview: The closed set of user roles, the Actor value and role capability tables.

"""
Roles and the authenticated Actor.

Every request is executed on behalf of exactly one Actor. The Actor is passed
explicitly to every scope and lifecycle decision; nothing reads it from
ambient state, so all decisions are plain functions of their arguments.

ROLE HIERARCHY (visibility narrows left to right):
    super_admin -> admin -> manager -> storeman / salesman -> retailer

    super_admin: system-wide, carries no scope fields
    admin:       one company
    manager:     one store (and its company)
    storeman:    one store, warehouse operations
    salesman:    one store, sales territory
    retailer:    exactly one retailer account, no company/store visibility

Every table keyed by Role must list every Role member. require_all_roles()
runs at import time, so a new role that is not handled everywhere fails
loudly on startup instead of silently falling through to "deny".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    STOREMAN = "storeman"
    SALESMAN = "salesman"
    RETAILER = "retailer"

    @classmethod
    def parse(cls, value: Any) -> "Role | None":
        """Return the Role for value, or None if it is not a known role."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


ALL_ROLES = frozenset(Role)


class ActorError(ValueError):
    """Raised when an Actor's scope fields contradict its role."""


def require_all_roles(table: Mapping[Role, Any], table_name: str) -> Mapping[Role, Any]:
    """Fail fast if a role-keyed decision table does not cover every Role."""
    missing = ALL_ROLES - set(table)
    if missing:
        names = ", ".join(sorted(role.value for role in missing))
        raise RuntimeError(f"{table_name} has no entry for role(s): {names}")
    return table


@dataclass(frozen=True)
class Actor:
    """
    The authenticated caller.

    Invariants (checked on construction):
    - retailer has retailer_id and neither company_id nor store_id
    - super_admin has no scope fields at all
    - company/store roles never carry retailer_id
    """
    role: Role
    company_id: str | None = None
    store_id: str | None = None
    retailer_id: int | None = None

    def __post_init__(self):
        role = Role.parse(self.role)
        if role is None:
            raise ActorError(f"Unknown role '{self.role}'")
        object.__setattr__(self, "role", role)

        if role is Role.RETAILER:
            if not self.retailer_id:
                raise ActorError("retailer actor requires retailer_id")
            if self.company_id or self.store_id:
                raise ActorError("retailer actor cannot carry company_id or store_id")
        elif role is Role.SUPER_ADMIN:
            if self.company_id or self.store_id or self.retailer_id:
                raise ActorError("super_admin actor cannot carry scope fields")
        else:
            if self.retailer_id:
                raise ActorError(f"{role.value} actor cannot carry retailer_id")

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(
            role=user.role,
            company_id=user.company_id or None,
            store_id=user.store_id or None,
            retailer_id=user.retailer_id or None,
        )

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "company_id": self.company_id,
            "store_id": self.store_id,
            "retailer_id": self.retailer_id,
        }


# -- CAPABILITIES --
# role -> can do it

MANAGE_USERS = require_all_roles({
    Role.SUPER_ADMIN: True,
    Role.ADMIN: True,
    Role.MANAGER: True,
    Role.STOREMAN: False,
    Role.SALESMAN: False,
    Role.RETAILER: False,
}, "MANAGE_USERS")

VIEW_REPORTS = require_all_roles({
    Role.SUPER_ADMIN: True,
    Role.ADMIN: True,
    Role.MANAGER: True,
    Role.STOREMAN: False,
    Role.SALESMAN: False,
    Role.RETAILER: False,
}, "VIEW_REPORTS")

MANAGE_INVENTORY = require_all_roles({
    Role.SUPER_ADMIN: True,
    Role.ADMIN: True,
    Role.MANAGER: True,
    Role.STOREMAN: True,
    Role.SALESMAN: False,
    Role.RETAILER: False,
}, "MANAGE_INVENTORY")

CREATE_ORDERS = require_all_roles({
    Role.SUPER_ADMIN: False,
    Role.ADMIN: True,
    Role.MANAGER: True,
    Role.STOREMAN: True,
    Role.SALESMAN: True,
    Role.RETAILER: False,
}, "CREATE_ORDERS")

# The status-change control is never offered to super_admin, salesman or retailer
CHANGE_ORDER_STATUS = require_all_roles({
    Role.SUPER_ADMIN: False,
    Role.ADMIN: True,
    Role.MANAGER: True,
    Role.STOREMAN: True,
    Role.SALESMAN: False,
    Role.RETAILER: False,
}, "CHANGE_ORDER_STATUS")

MANAGE_RETAILERS = require_all_roles({
    Role.SUPER_ADMIN: True,
    Role.ADMIN: True,
    Role.MANAGER: True,
    Role.STOREMAN: False,
    Role.SALESMAN: False,
    Role.RETAILER: False,
}, "MANAGE_RETAILERS")

CAPABILITIES = {
    "manage_users": MANAGE_USERS,
    "view_reports": VIEW_REPORTS,
    "manage_inventory": MANAGE_INVENTORY,
    "create_orders": CREATE_ORDERS,
    "change_order_status": CHANGE_ORDER_STATUS,
    "manage_retailers": MANAGE_RETAILERS,
}


def roles_with(capability: Mapping[Role, bool]) -> frozenset[Role]:
    return frozenset(role for role, allowed in capability.items() if allowed)


def has_capability(actor: Actor | None, capability: Mapping[Role, bool]) -> bool:
    if actor is None:
        return False
    return capability[actor.role]


def can_manage_users(actor: Actor | None) -> bool:
    return has_capability(actor, MANAGE_USERS)


def can_view_reports(actor: Actor | None) -> bool:
    return has_capability(actor, VIEW_REPORTS)


def can_manage_inventory(actor: Actor | None) -> bool:
    return has_capability(actor, MANAGE_INVENTORY)


def can_create_orders(actor: Actor | None) -> bool:
    return has_capability(actor, CREATE_ORDERS)


def can_change_order_status(actor: Actor | None) -> bool:
    return has_capability(actor, CHANGE_ORDER_STATUS)


def can_manage_retailers(actor: Actor | None) -> bool:
    return has_capability(actor, MANAGE_RETAILERS)


def capability_flags(actor: Actor | None) -> dict[str, bool]:
    """All capability flags for an actor, for UI filtering."""
    return {name: has_capability(actor, table) for name, table in CAPABILITIES.items()}
