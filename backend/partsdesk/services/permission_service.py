# Overview: Service-layer operations for role checks and the security audit trail.

"""
Role Permission Service

WHY: Role checks happen at the route boundary (decorators.require_roles) and,
for defence in depth, again inside services that mutate data. Every denial
is written to the security_events table so that probing is visible.

event_type values:
- LOGIN_FAILED / LOGIN_SUCCESS (login_throttle_service)
- PERMISSION_DENIED: role lacks the capability for an operation
- SCOPE_DENIED: AccessScope refused a company/store/retailer/order
- ACTOR_INVALID: a user row no longer maps to a valid Actor
"""

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..models import SecurityEvent
from partsdesk.permissions import Actor, Role
from partsdesk.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when the actor's role does not allow an operation."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    company_id: str | None = None,
    store_id: str | None = None,
) -> SecurityEvent:
    """
    Append a security event and commit it.

    The event is committed on its own so that a denial is recorded even if
    the surrounding request later rolls back.
    """
    event = SecurityEvent(
        user_id=user_id,
        company_id=company_id,
        store_id=store_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def _request_context() -> dict:
    """Client details of the current request, if there is one."""
    from flask import has_request_context, request

    if not has_request_context():
        return {"resource": None, "ip_address": None, "user_agent": None}
    return {
        "resource": request.path,
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


def log_denial(
    actor: Actor | None,
    *,
    user_id: int | None,
    event_type: str,
    action: str,
    reason: str,
) -> SecurityEvent:
    context = _request_context()
    return log_security_event(
        user_id=user_id,
        event_type=event_type,
        success=False,
        resource=context["resource"],
        action=action,
        reason=reason,
        ip_address=context["ip_address"],
        user_agent=context["user_agent"],
        company_id=actor.company_id if actor else None,
        store_id=actor.store_id if actor else None,
    )


def require_role(
    actor: Actor | None,
    allowed: Iterable[Role],
    *,
    action: str,
    user_id: int | None = None,
) -> None:
    """
    Raise PermissionDeniedError unless actor holds one of the allowed roles.

    Logs PERMISSION_DENIED on failure.
    """
    allowed = frozenset(allowed)
    if actor is not None and actor.role in allowed:
        return

    role_name = actor.role.value if actor else "anonymous"
    reason = f"Role '{role_name}' not permitted for {action}"
    log_denial(actor, user_id=user_id, event_type="PERMISSION_DENIED", action=action, reason=reason)
    raise PermissionDeniedError(reason)
