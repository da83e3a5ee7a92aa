"""
Retailer Service

ROLE SCOPE: Retailers are managed by super_admin, admin and manager.
A retailer's home store must be inside the creator's scope; only
super_admin may create a retailer without a home store.

RULES:
1. Any operational role may read a retailer (orders reference them freely)
2. Changes (update, confirm, activate/deactivate) additionally require the
   retailer's home store to be in the actor's scope
3. A confirmed retailer stays confirmed; confirming twice is a no-op
"""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Retailer
from ..validation import ValidationError, require_fields, coerce_number, coerce_bool, coerce_text
from partsdesk.permissions import Actor, Role, MANAGE_RETAILERS, roles_with
from .permission_service import require_role
from . import scope_service


RETAILER_FIELDS = ("crm_id", "contact_person", "address", "mobile", "email", "gst_no")

MANAGER_ROLES = roles_with(MANAGE_RETAILERS)


def _optional_text(name: str, value) -> str | None:
    return coerce_text(name, value) or None


def _credit_limit(value) -> float:
    if value in (None, ""):
        return 0
    return coerce_number("credit_limit", value, minimum=0)


def _require_home_store(actor: Actor, store_code, *, user_id: int | None) -> str | None:
    store_code = _optional_text("store_code", store_code)
    if store_code:
        scope_service.require_store_access(actor, store_code, user_id=user_id)
    elif actor.role is not Role.SUPER_ADMIN:
        raise ValidationError("store_code is required")
    return store_code


def create_retailer(actor: Actor, data: dict, *, user_id: int | None = None) -> Retailer:
    require_role(actor, MANAGER_ROLES, action="create_retailer", user_id=user_id)
    require_fields(data, "name")

    store_code = _require_home_store(actor, data.get("store_code") or actor.store_id, user_id=user_id)

    retailer = Retailer(
        name=coerce_text("name", data["name"], required=True),
        store_code=store_code,
        credit_limit=_credit_limit(data.get("credit_limit")),
        is_active=True,
        is_confirmed=False,
        **{field: _optional_text(field, data.get(field)) for field in RETAILER_FIELDS},
    )
    db.session.add(retailer)
    db.session.commit()
    return retailer


def get_retailer(actor: Actor, retailer_id: int, *, user_id: int | None = None) -> Retailer:
    return scope_service.require_retailer_access(actor, retailer_id, user_id=user_id)


def list_retailers(actor: Actor, *, store_code: str | None = None, active_only: bool = False) -> list[Retailer]:
    retailers = scope_service.scoped_retailers(actor)
    if store_code:
        retailers = [retailer for retailer in retailers if retailer.store_code == store_code]
    if active_only:
        retailers = [retailer for retailer in retailers if retailer.is_active]
    return retailers


def _managed_retailer(actor: Actor, retailer_id: int, action: str, user_id: int | None) -> Retailer:
    require_role(actor, MANAGER_ROLES, action=action, user_id=user_id)
    retailer = scope_service.require_retailer_access(actor, retailer_id, user_id=user_id)
    if actor.role is not Role.SUPER_ADMIN:
        # Home store must be ours; retailers without one belong to super_admin
        scope_service.require_store_access(actor, retailer.store_code, user_id=user_id)
    return retailer


def update_retailer(actor: Actor, retailer_id: int, data: dict, *, user_id: int | None = None) -> Retailer:
    """
    Partial update. Only fields present in data change.

    Moving a retailer to another home store needs access to that store too.
    """
    retailer = _managed_retailer(actor, retailer_id, "update_retailer", user_id)

    changes = {}
    if "name" in data:
        changes["name"] = coerce_text("name", data["name"], required=True)
    for field in RETAILER_FIELDS:
        if field in data:
            changes[field] = _optional_text(field, data[field])
    if "credit_limit" in data:
        changes["credit_limit"] = _credit_limit(data["credit_limit"])
    if "store_code" in data:
        changes["store_code"] = _require_home_store(actor, data["store_code"], user_id=user_id)

    for field, value in changes.items():
        setattr(retailer, field, value)
    db.session.commit()
    return retailer


def confirm_retailer(actor: Actor, retailer_id: int, *, user_id: int | None = None) -> Retailer:
    retailer = _managed_retailer(actor, retailer_id, "confirm_retailer", user_id)
    retailer.is_confirmed = True
    db.session.commit()
    return retailer


def set_retailer_active(actor: Actor, retailer_id: int, is_active, *, user_id: int | None = None) -> Retailer:
    """Inactive retailers stay visible but can no longer receive new orders."""
    retailer = _managed_retailer(actor, retailer_id, "set_retailer_status", user_id)
    retailer.is_active = coerce_bool("is_active", is_active)
    db.session.commit()
    return retailer


def retailer_stats(actor: Actor) -> dict:
    """Counts over the retailers in the actor's scope."""
    ids = [retailer.id for retailer in scope_service.scoped_retailers(actor)]
    if not ids:
        return {
            "total_retailers": 0,
            "active_retailers": 0,
            "confirmed_retailers": 0,
            "unique_stores": 0,
            "avg_credit_limit": 0.0,
        }

    base = db.session.query(Retailer).filter(Retailer.id.in_(ids))
    avg_credit = base.with_entities(func.avg(Retailer.credit_limit)).scalar()
    return {
        "total_retailers": len(ids),
        "active_retailers": base.filter(Retailer.is_active.is_(True)).count(),
        "confirmed_retailers": base.filter(Retailer.is_confirmed.is_(True)).count(),
        "unique_stores": base.with_entities(func.count(func.distinct(Retailer.store_code))).scalar() or 0,
        "avg_credit_limit": round(float(avg_credit or 0), 2),
    }
