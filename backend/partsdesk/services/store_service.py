"""
Company and Store Service

ROLE SCOPE:
- Companies are created, updated and deleted by super_admin only
- Stores are created, updated and deleted by super_admin (any company) or
  admin (own company); only super_admin may move a store to another company
- Reads go through scope_service so nobody sees outside their scope

DELETION: a company or store that still has anything hanging off it
(stores, users, retailers, orders) is refused with ConflictError. Orders
and their history are never deleted, so a store that ever took an order
stays.
"""
from __future__ import annotations

import re

from ..extensions import db
from ..models import Company, Store, Retailer, Order, User
from ..validation import ValidationError, ConflictError, require_fields
from partsdesk.permissions import Actor, Role
from .permission_service import require_role
from . import scope_service


# Branch codes: letters and digits, e.g. NYC001
STORE_CODE_RE = re.compile(r"^[A-Z0-9][A-Z0-9_-]{1,14}$")

COMPANY_FIELDS = ("address", "contact_email", "contact_phone", "logo_url")
STORE_FIELDS = ("address", "phone", "email", "manager_name", "manager_mobile")


def _clean(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def create_company(actor: Actor, data: dict, *, user_id: int | None = None) -> Company:
    require_role(actor, {Role.SUPER_ADMIN}, action="create_company", user_id=user_id)
    require_fields(data, "id", "name")

    company_id = _clean(data["id"])
    if db.session.get(Company, company_id) is not None:
        raise ConflictError(f"Company '{company_id}' already exists")

    company = Company(
        id=company_id,
        name=_clean(data["name"]),
        created_by_user_id=user_id,
        **{field: _clean(data.get(field)) for field in COMPANY_FIELDS},
    )
    db.session.add(company)
    db.session.commit()
    return company


def get_company(actor: Actor, company_id: str, *, user_id: int | None = None) -> Company:
    return scope_service.require_company_access(actor, company_id, user_id=user_id)


def list_companies(actor: Actor) -> list[Company]:
    return scope_service.scoped_companies(actor)


def create_store(actor: Actor, data: dict, *, user_id: int | None = None) -> Store:
    """
    Create a branch under a company.

    admin may only create stores in their own company; company_id defaults
    to it.
    """
    require_role(actor, {Role.SUPER_ADMIN, Role.ADMIN}, action="create_store", user_id=user_id)
    require_fields(data, "code")

    code = _clean(data["code"]).upper()
    if not STORE_CODE_RE.match(code):
        raise ValidationError("code must be 2-15 letters, digits, '-' or '_'")

    company_id = _clean(data.get("company_id")) or actor.company_id
    if not company_id:
        raise ValidationError("company_id is required")
    scope_service.require_company_access(actor, company_id, user_id=user_id)

    if db.session.get(Store, code) is not None:
        raise ConflictError(f"Store '{code}' already exists")

    store = Store(
        code=code,
        company_id=company_id,
        name=_clean(data.get("name")),
        **{field: _clean(data.get(field)) for field in STORE_FIELDS},
    )
    db.session.add(store)
    db.session.commit()
    return store


def get_store(actor: Actor, code: str, *, user_id: int | None = None) -> Store:
    return scope_service.require_store_access(actor, code, user_id=user_id)


def list_stores(actor: Actor, company_id: str | None = None) -> list[Store]:
    stores = scope_service.scoped_stores(actor)
    if company_id:
        stores = [store for store in stores if store.company_id == company_id]
    return stores


def _apply(entity, data: dict, fields) -> None:
    for field in fields:
        if field in data:
            setattr(entity, field, _clean(data[field]))


def update_company(actor: Actor, company_id: str, data: dict, *, user_id: int | None = None) -> Company:
    require_role(actor, {Role.SUPER_ADMIN}, action="update_company", user_id=user_id)
    company = scope_service.require_company_access(actor, company_id, user_id=user_id)

    if "name" in data:
        name = _clean(data["name"])
        if not name:
            raise ValidationError("Company name is required")
        company.name = name
    _apply(company, data, COMPANY_FIELDS)
    db.session.commit()
    return company


def delete_company(actor: Actor, company_id: str, *, user_id: int | None = None) -> None:
    require_role(actor, {Role.SUPER_ADMIN}, action="delete_company", user_id=user_id)
    company = scope_service.require_company_access(actor, company_id, user_id=user_id)

    if db.session.query(Store.code).filter_by(company_id=company.id).first() is not None:
        raise ConflictError("Company still has stores")
    if db.session.query(User.id).filter_by(company_id=company.id).first() is not None:
        raise ConflictError("Company still has users")

    db.session.delete(company)
    db.session.commit()


def update_store(actor: Actor, code: str, data: dict, *, user_id: int | None = None) -> Store:
    require_role(actor, {Role.SUPER_ADMIN, Role.ADMIN}, action="update_store", user_id=user_id)
    store = scope_service.require_store_access(actor, code, user_id=user_id)

    company_id = _clean(data.get("company_id"))
    if company_id and company_id != store.company_id:
        require_role(actor, {Role.SUPER_ADMIN}, action="move_store", user_id=user_id)
        if db.session.get(Company, company_id) is None:
            raise ValidationError(f"Company '{company_id}' not found")
        if db.session.query(User.id).filter_by(store_id=store.code).first() is not None:
            raise ConflictError("Store still has users; reassign them before moving the store")
        store.company_id = company_id

    _apply(store, data, ("name",) + STORE_FIELDS)
    db.session.commit()
    return store


def delete_store(actor: Actor, code: str, *, user_id: int | None = None) -> None:
    require_role(actor, {Role.SUPER_ADMIN, Role.ADMIN}, action="delete_store", user_id=user_id)
    store = scope_service.require_store_access(actor, code, user_id=user_id)

    if db.session.query(Order.id).filter_by(store_code=store.code).first() is not None:
        raise ConflictError("Store has orders and cannot be deleted")
    if db.session.query(User.id).filter_by(store_id=store.code).first() is not None:
        raise ConflictError("Store still has users")
    if db.session.query(Retailer.id).filter_by(store_code=store.code).first() is not None:
        raise ConflictError("Store is still the home store of retailers")

    db.session.delete(store)
    db.session.commit()
