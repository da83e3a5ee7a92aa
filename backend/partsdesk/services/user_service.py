# Overview: Service-layer operations for user administration; scoped wrappers around auth_service.

"""
User Administration Service

WHY: auth_service knows how to build a valid user. This module decides who
may build, see or change which users.

ROLE SCOPE (MANAGE_USERS holders only):
- super_admin: any user, any role
- admin: staff of their own company and logins of the company's retailers;
  never a super_admin
- manager: storeman and salesman accounts of their own store

RULES:
1. Targets outside the actor's reach are refused with ScopeDenied
2. Creating a role the actor may not hand out is PermissionDeniedError
3. Nobody deactivates their own account
4. Users are never deleted; deactivation revokes their sessions instead,
   so order history stays attributable
"""
from __future__ import annotations

from datetime import timedelta
from typing import Any

from ..extensions import db
from ..models import User
from ..validation import ValidationError, ConflictError, coerce_int, coerce_bool, coerce_text
from partsdesk.permissions import Actor, Role, MANAGE_USERS, roles_with
from partsdesk.time_utils import utcnow
from .permission_service import PermissionDeniedError, log_denial, require_role
from . import auth_service, scope_service


USER_ADMIN_ROLES = roles_with(MANAGE_USERS)

# Accounts a manager may create and change
MANAGER_MANAGED_ROLES = frozenset({Role.STOREMAN, Role.SALESMAN})


def _deny_target_role(actor: Actor, role: Role, action: str, user_id: int | None):
    reason = f"Role '{actor.role.value}' may not {action} '{role.value}' users"
    log_denial(actor, user_id=user_id, event_type="PERMISSION_DENIED", action=action, reason=reason)
    raise PermissionDeniedError(reason)


def _check_target_role(actor: Actor, role: Role, action: str, user_id: int | None) -> None:
    if actor.role is Role.ADMIN and role is Role.SUPER_ADMIN:
        _deny_target_role(actor, role, action, user_id)
    if actor.role is Role.MANAGER and role not in MANAGER_MANAGED_ROLES:
        _deny_target_role(actor, role, action, user_id)


def list_users(actor: Actor, filters: dict | None = None, *, user_id: int | None = None) -> dict:
    """
    Users the actor may manage, newest first.

    Filters: search (name or email), role, company_id, store_id, is_active,
    page, limit.
    """
    require_role(actor, USER_ADMIN_ROLES, action="list_users", user_id=user_id)
    filters = filters or {}

    query = scope_service.scoped_users_query(actor)
    search = coerce_text("search", filters.get("search"))
    if search:
        pattern = f"%{search}%"
        query = query.filter(db.or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if filters.get("role"):
        query = query.filter(User.role == filters["role"])
    if filters.get("company_id"):
        query = query.filter(User.company_id == filters["company_id"])
    if filters.get("store_id"):
        query = query.filter(User.store_id == filters["store_id"])
    if filters.get("is_active") not in (None, ""):
        query = query.filter(User.is_active.is_(coerce_bool("is_active", filters["is_active"])))

    page = coerce_int("page", filters.get("page") or 1, minimum=1)
    limit = coerce_int("limit", filters.get("limit") or 50, minimum=1, maximum=200)

    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "users": [user.to_dict() for user in users],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def get_user(actor: Actor, target_id: int, *, user_id: int | None = None) -> User:
    require_role(actor, USER_ADMIN_ROLES, action="view_user", user_id=user_id)
    return scope_service.require_user_access(actor, target_id, user_id=user_id)


def create_user(actor: Actor, data: dict, *, user_id: int | None = None) -> User:
    """
    Create a user inside the actor's scope.

    Company and store default to the actor's own where the role needs them.
    """
    require_role(actor, USER_ADMIN_ROLES, action="create_user", user_id=user_id)

    role = Role.parse(data.get("role"))
    if role is None:
        raise ValidationError("role must be one of: " + ", ".join(sorted(r.value for r in Role)))
    _check_target_role(actor, role, "create", user_id)

    password = data.get("password")
    if not isinstance(password, str) or not password:
        raise ValidationError("password is required")

    company_id = coerce_text("company_id", data.get("company_id")) or None
    store_id = coerce_text("store_id", data.get("store_id")) or None
    retailer_id = data.get("retailer_id")
    retailer_id = None if retailer_id in (None, "") else coerce_int("retailer_id", retailer_id, minimum=1)

    if role is Role.RETAILER:
        if retailer_id is None:
            raise ValidationError("retailer_id is required")
        retailer = scope_service.require_retailer_access(actor, retailer_id, user_id=user_id)
        if actor.role is not Role.SUPER_ADMIN:
            scope_service.require_store_access(actor, retailer.store_code, user_id=user_id)
    elif role is not Role.SUPER_ADMIN and actor.role is not Role.SUPER_ADMIN:
        if actor.role is Role.MANAGER:
            store_id = store_id or actor.store_id
        company_id = company_id or actor.company_id
        scope_service.require_company_access(actor, company_id, user_id=user_id)
        if store_id:
            scope_service.require_store_access(actor, store_id, user_id=user_id)

    return auth_service.create_user(
        coerce_text("name", data.get("name"), required=True),
        coerce_text("email", data.get("email"), required=True),
        password,
        role.value,
        company_id=company_id,
        store_id=store_id,
        retailer_id=retailer_id,
    )


def _managed_user(actor: Actor, target_id: int, action: str, user_id: int | None) -> User:
    require_role(actor, USER_ADMIN_ROLES, action=action, user_id=user_id)
    target = scope_service.require_user_access(actor, target_id, user_id=user_id)
    if target.id != user_id:
        _check_target_role(actor, Role(target.role), "change", user_id)
    return target


def update_user(actor: Actor, target_id: int, data: dict, *, user_id: int | None = None) -> User:
    """
    Change a user's name or email.

    Role and scope are fixed at creation; passwords are not changed here.
    """
    target = _managed_user(actor, target_id, "update_user", user_id)

    name = coerce_text("name", data["name"], required=True) if "name" in data else target.name
    email = target.email
    if "email" in data:
        email = coerce_text("email", data["email"], required=True).lower()
        taken = db.session.query(User.id).filter(User.email == email, User.id != target.id).first()
        if taken is not None:
            raise ConflictError(f"Email '{email}' already exists")

    target.name = name
    target.email = email
    db.session.commit()
    return target


def set_user_status(actor: Actor, target_id: int, is_active: Any, *, user_id: int | None = None) -> User:
    target = _managed_user(actor, target_id, "set_user_status", user_id)
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be a boolean")
    if not is_active and target.id == user_id:
        raise ValidationError("Cannot deactivate your own account")
    return auth_service.set_user_active(target.id, is_active)


def user_stats(actor: Actor, *, user_id: int | None = None) -> dict:
    """Counts over the users the actor may manage."""
    require_role(actor, {Role.SUPER_ADMIN, Role.ADMIN}, action="view_user_stats", user_id=user_id)
    users = scope_service.scoped_users_query(actor).all()
    cutoff = utcnow() - timedelta(days=30)
    return {
        "total_users": len(users),
        "active_users": sum(1 for user in users if user.is_active),
        "retailer_users": sum(1 for user in users if user.role == Role.RETAILER.value),
        "staff_users": sum(1 for user in users if user.role != Role.RETAILER.value),
        "active_last_30_days": sum(
            1 for user in users if user.last_login_at is not None and user.last_login_at >= cutoff
        ),
    }
