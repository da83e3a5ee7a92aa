# Overview: Role and scope package.
# Re-exports the public API used by services, routes and the CLI.

from .roles import (
    Role,
    Actor,
    ActorError,
    ALL_ROLES,
    CREATE_ORDERS,
    CHANGE_ORDER_STATUS,
    MANAGE_RETAILERS,
    MANAGE_USERS,
    VIEW_REPORTS,
    MANAGE_INVENTORY,
    roles_with,
    capability_flags,
    can_manage_users,
    can_view_reports,
    can_manage_inventory,
    can_create_orders,
    can_change_order_status,
    can_manage_retailers,
)
from .scope import (
    ScopeUniverse,
    can_access_company,
    can_access_store,
    can_access_retailer,
    accessible_companies,
    accessible_stores,
    accessible_retailers,
    current_scope_label,
)

__all__ = [
    "Role",
    "Actor",
    "ActorError",
    "ALL_ROLES",
    "CREATE_ORDERS",
    "CHANGE_ORDER_STATUS",
    "MANAGE_RETAILERS",
    "MANAGE_USERS",
    "VIEW_REPORTS",
    "MANAGE_INVENTORY",
    "roles_with",
    "capability_flags",
    "can_manage_users",
    "can_view_reports",
    "can_manage_inventory",
    "can_create_orders",
    "can_change_order_status",
    "can_manage_retailers",
    "ScopeUniverse",
    "can_access_company",
    "can_access_store",
    "can_access_retailer",
    "accessible_companies",
    "accessible_stores",
    "accessible_retailers",
    "current_scope_label",
]
