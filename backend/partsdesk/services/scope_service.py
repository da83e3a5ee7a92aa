"""
Scope Service: Scope-Data Collaborator and Enforcement Helpers

WHY: permissions.scope holds the pure per-role decision rules. This module
supplies what those rules cannot know on their own (which stores belong to
which company, which retailers belong to which store) and turns a "False"
from AccessScope into a ScopeDenied error before any read or write happens.

SECURITY INVARIANTS:
1. Every single-entity read or write goes through a require_* helper
2. List endpoints filter through the accessible_* sets, never the raw tables
3. For admin, store access is re-checked against the persisted
   store -> company mapping (AccessScope alone lets admin through)
4. Every denial is logged as a SCOPE_DENIED security event

USAGE:
    from partsdesk.services import scope_service

    store = scope_service.require_store_access(g.actor, store_code, user_id=g.current_user.id)
    orders = scope_service.scoped_orders_query(g.actor).all()
"""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import and_, false, or_

from ..extensions import db
from ..models import Company, Store, Retailer, Order, User
from partsdesk.permissions import (
    Actor,
    Role,
    ScopeUniverse,
    can_access_company,
    can_access_store,
    can_access_retailer,
    accessible_companies,
    accessible_stores,
    accessible_retailers,
)
from .permission_service import log_denial


class ScopeDenied(Exception):
    """Raised when an actor reaches for an entity outside their scope."""

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"Access denied to this {entity}")


def load_universe() -> ScopeUniverse:
    """
    Build the entity universe AccessScope resolves against.

    Retailers without a home store only appear in the super_admin set.
    """
    company_ids = frozenset(row[0] for row in db.session.query(Company.id).all())

    stores_by_company: dict[str, set[str]] = defaultdict(set)
    all_stores: set[str] = set()
    for code, company_id in db.session.query(Store.code, Store.company_id).all():
        stores_by_company[company_id].add(code)
        all_stores.add(code)

    retailers_by_store: dict[str, set[int]] = defaultdict(set)
    all_retailers: set[int] = set()
    for retailer_id, store_code in db.session.query(Retailer.id, Retailer.store_code).all():
        all_retailers.add(retailer_id)
        if store_code:
            retailers_by_store[store_code].add(retailer_id)

    return ScopeUniverse(
        companies=company_ids,
        stores=frozenset(all_stores),
        retailers=frozenset(all_retailers),
        stores_by_company={key: frozenset(value) for key, value in stores_by_company.items()},
        retailers_by_store={key: frozenset(value) for key, value in retailers_by_store.items()},
    )


def _deny(actor: Actor | None, entity: str, identifier, *, user_id: int | None, reason: str):
    log_denial(
        actor,
        user_id=user_id,
        event_type="SCOPE_DENIED",
        action=f"{entity}:{identifier}",
        reason=reason,
    )
    raise ScopeDenied(entity, identifier)


def require_company_access(actor: Actor | None, company_id: str | None, *, user_id: int | None = None) -> Company:
    company = db.session.get(Company, company_id) if company_id else None
    if company is None or not can_access_company(actor, company_id):
        _deny(actor, "company", company_id, user_id=user_id, reason="Company outside actor scope or missing")
    return company


def require_store_access(actor: Actor | None, store_code: str | None, *, user_id: int | None = None) -> Store:
    """
    Resolve a store the actor may touch.

    Admin passes AccessScope for any store; the store's company is then
    checked here against the admin's own company.
    """
    store = db.session.get(Store, store_code) if store_code else None
    if store is None or not can_access_store(actor, store_code):
        _deny(actor, "store", store_code, user_id=user_id, reason="Store outside actor scope or missing")

    if actor.role is Role.ADMIN and store.company_id != actor.company_id:
        _deny(
            actor, "store", store_code, user_id=user_id,
            reason=f"Store belongs to company {store.company_id}, not {actor.company_id}",
        )
    return store


def require_retailer_access(actor: Actor | None, retailer_id: int | None, *, user_id: int | None = None) -> Retailer:
    retailer = db.session.get(Retailer, retailer_id) if retailer_id else None
    if retailer is None or not can_access_retailer(actor, retailer_id):
        _deny(actor, "retailer", retailer_id, user_id=user_id, reason="Retailer outside actor scope or missing")
    return retailer


def can_see_order(actor: Actor | None, order: Order, universe: ScopeUniverse | None = None) -> bool:
    """
    Visibility rule for a single order.

    Retailers see their own orders only. Everyone else sees orders placed at
    a store in their accessible store set.
    """
    if actor is None:
        return False
    if actor.role is Role.RETAILER:
        return can_access_retailer(actor, order.retailer_id)
    if actor.role is Role.SUPER_ADMIN:
        return True
    if universe is None:
        universe = load_universe()
    return order.store_code in accessible_stores(actor, universe)


def require_order_access(actor: Actor | None, order: Order, *, user_id: int | None = None) -> Order:
    if not can_see_order(actor, order):
        _deny(actor, "order", order.id, user_id=user_id, reason="Order outside actor scope")
    return order


def scoped_orders_query(actor: Actor | None, universe: ScopeUniverse | None = None):
    """Order query restricted to what the actor may see."""
    query = db.session.query(Order)
    if actor is None:
        return query.filter(false())
    if actor.role is Role.SUPER_ADMIN:
        return query
    if actor.role is Role.RETAILER:
        return query.filter(Order.retailer_id == actor.retailer_id)

    if universe is None:
        universe = load_universe()
    store_codes = accessible_stores(actor, universe)
    if not store_codes:
        return query.filter(false())
    return query.filter(Order.store_code.in_(sorted(store_codes)))


def scoped_companies(actor: Actor | None) -> list[Company]:
    company_ids = accessible_companies(actor, load_universe())
    if not company_ids:
        return []
    return (
        db.session.query(Company)
        .filter(Company.id.in_(sorted(company_ids)))
        .order_by(Company.name.asc())
        .all()
    )


def scoped_stores(actor: Actor | None) -> list[Store]:
    store_codes = accessible_stores(actor, load_universe())
    if not store_codes:
        return []
    return (
        db.session.query(Store)
        .filter(Store.code.in_(sorted(store_codes)))
        .order_by(Store.name.asc(), Store.code.asc())
        .all()
    )


def scoped_retailers(actor: Actor | None) -> list[Retailer]:
    retailer_ids = accessible_retailers(actor, load_universe())
    if not retailer_ids:
        return []
    return (
        db.session.query(Retailer)
        .filter(Retailer.id.in_(sorted(retailer_ids)))
        .order_by(Retailer.name.asc())
        .all()
    )


def scoped_users_query(actor: Actor | None, universe: ScopeUniverse | None = None):
    """
    User query restricted to the accounts an actor may manage.

    admin sees the company's staff plus retailer logins of the company's
    retailers; manager sees the users of their own store. Everyone else
    only has /me.
    """
    query = db.session.query(User)
    if actor is None:
        return query.filter(false())
    if actor.role is Role.SUPER_ADMIN:
        return query
    if actor.role is Role.ADMIN:
        if universe is None:
            universe = load_universe()
        condition = User.company_id == actor.company_id
        retailer_ids = accessible_retailers(actor, universe)
        if retailer_ids:
            condition = or_(
                condition,
                and_(User.role == Role.RETAILER.value, User.retailer_id.in_(sorted(retailer_ids))),
            )
        return query.filter(condition)
    if actor.role is Role.MANAGER:
        return query.filter(User.store_id == actor.store_id)
    return query.filter(false())


def require_user_access(actor: Actor | None, target_id: int | None, *, user_id: int | None = None) -> User:
    target = scoped_users_query(actor).filter(User.id == target_id).first() if target_id else None
    if target is None:
        _deny(actor, "user", target_id, user_id=user_id, reason="User outside actor scope or missing")
    return target
