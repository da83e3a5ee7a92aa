# Overview: Role-scoped visibility rules for companies, stores and retailers.

"""
AccessScope: which companies, stores and retailers an Actor may see or touch.

Pure decision rules. No I/O, no exceptions: every predicate is total and a
missing actor or identifier simply yields False / an empty set.

The "universe" sets (all companies, stores per company, retailers per store)
are not fetched here. Callers pass a ScopeUniverse built by the scope-data
collaborator (services/scope_service.load_universe).

STORE ACCESS FOR ADMIN:
    can_access_store() returns True for admin and any store. Whether that
    store actually belongs to the admin's company is checked authoritatively
    by scope_service.require_store_access against the persisted mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .roles import Actor, Role, require_all_roles


@dataclass(frozen=True)
class ScopeUniverse:
    """Externally supplied entity sets AccessScope resolves against."""
    companies: frozenset[str] = frozenset()
    stores: frozenset[str] = frozenset()
    retailers: frozenset[int] = frozenset()
    stores_by_company: Mapping[str, frozenset[str]] = field(default_factory=dict)
    retailers_by_store: Mapping[str, frozenset[int]] = field(default_factory=dict)

    def stores_of(self, company_id: str | None) -> frozenset[str]:
        if not company_id:
            return frozenset()
        return frozenset(self.stores_by_company.get(company_id, ()))

    def retailers_of(self, store_ids: Iterable[str]) -> frozenset[int]:
        found: set[int] = set()
        for store_id in store_ids:
            found.update(self.retailers_by_store.get(store_id, ()))
        return frozenset(found)


EMPTY_UNIVERSE = ScopeUniverse()


# -- POINT QUERIES --

def _same_company(actor: Actor, company_id: str) -> bool:
    return actor.company_id == company_id


def _same_store(actor: Actor, store_id: str) -> bool:
    return actor.store_id == store_id


def _same_retailer(actor: Actor, retailer_id: int) -> bool:
    return actor.retailer_id == retailer_id


def _always(actor: Actor, _identifier) -> bool:
    return True


def _never(actor: Actor, _identifier) -> bool:
    return False


_COMPANY_RULES = require_all_roles({
    Role.SUPER_ADMIN: _always,
    Role.ADMIN: _same_company,
    Role.MANAGER: _same_company,
    Role.STOREMAN: _same_company,
    Role.SALESMAN: _same_company,
    Role.RETAILER: _never,
}, "company access rules")

_STORE_RULES = require_all_roles({
    Role.SUPER_ADMIN: _always,
    Role.ADMIN: _always,
    Role.MANAGER: _same_store,
    Role.STOREMAN: _same_store,
    Role.SALESMAN: _same_store,
    Role.RETAILER: _never,
}, "store access rules")

# Operational roles may always reference retailers for order workflows
_RETAILER_RULES = require_all_roles({
    Role.SUPER_ADMIN: _always,
    Role.ADMIN: _always,
    Role.MANAGER: _always,
    Role.STOREMAN: _always,
    Role.SALESMAN: _always,
    Role.RETAILER: _same_retailer,
}, "retailer access rules")


def can_access_company(actor: Actor | None, company_id: str | None) -> bool:
    if actor is None or not company_id:
        return False
    return _COMPANY_RULES[actor.role](actor, company_id)


def can_access_store(actor: Actor | None, store_id: str | None) -> bool:
    if actor is None or not store_id:
        return False
    return _STORE_RULES[actor.role](actor, store_id)


def can_access_retailer(actor: Actor | None, retailer_id: int | None) -> bool:
    if actor is None or not retailer_id:
        return False
    return _RETAILER_RULES[actor.role](actor, retailer_id)


# -- VISIBILITY SETS --

def _own_company(actor: Actor, universe: ScopeUniverse) -> frozenset[str]:
    return frozenset({actor.company_id}) if actor.company_id else frozenset()


def _own_store(actor: Actor, universe: ScopeUniverse) -> frozenset[str]:
    return frozenset({actor.store_id}) if actor.store_id else frozenset()


def _own_retailer(actor: Actor, universe: ScopeUniverse) -> frozenset[int]:
    return frozenset({actor.retailer_id}) if actor.retailer_id else frozenset()


def _nothing(actor: Actor, universe: ScopeUniverse) -> frozenset:
    return frozenset()


_ACCESSIBLE_COMPANIES = require_all_roles({
    Role.SUPER_ADMIN: lambda actor, universe: universe.companies,
    Role.ADMIN: _own_company,
    Role.MANAGER: _own_company,
    Role.STOREMAN: _own_company,
    Role.SALESMAN: _own_company,
    Role.RETAILER: _nothing,
}, "accessible companies")

_ACCESSIBLE_STORES = require_all_roles({
    Role.SUPER_ADMIN: lambda actor, universe: universe.stores,
    Role.ADMIN: lambda actor, universe: universe.stores_of(actor.company_id),
    Role.MANAGER: _own_store,
    Role.STOREMAN: _own_store,
    Role.SALESMAN: _own_store,
    Role.RETAILER: _nothing,
}, "accessible stores")

_ACCESSIBLE_RETAILERS = require_all_roles({
    Role.SUPER_ADMIN: lambda actor, universe: universe.retailers,
    Role.ADMIN: lambda actor, universe: universe.retailers_of(universe.stores_of(actor.company_id)),
    Role.MANAGER: lambda actor, universe: universe.retailers_of(_own_store(actor, universe)),
    Role.STOREMAN: lambda actor, universe: universe.retailers_of(_own_store(actor, universe)),
    Role.SALESMAN: lambda actor, universe: universe.retailers_of(_own_store(actor, universe)),
    Role.RETAILER: _own_retailer,
}, "accessible retailers")


def accessible_companies(actor: Actor | None, universe: ScopeUniverse | None = None) -> frozenset[str]:
    if actor is None:
        return frozenset()
    return frozenset(_ACCESSIBLE_COMPANIES[actor.role](actor, universe or EMPTY_UNIVERSE))


def accessible_stores(actor: Actor | None, universe: ScopeUniverse | None = None) -> frozenset[str]:
    if actor is None:
        return frozenset()
    return frozenset(_ACCESSIBLE_STORES[actor.role](actor, universe or EMPTY_UNIVERSE))


def accessible_retailers(actor: Actor | None, universe: ScopeUniverse | None = None) -> frozenset[int]:
    if actor is None:
        return frozenset()
    return frozenset(_ACCESSIBLE_RETAILERS[actor.role](actor, universe or EMPTY_UNIVERSE))


# -- DISPLAY --

_SCOPE_LABELS = require_all_roles({
    Role.SUPER_ADMIN: lambda actor: "System-wide Access",
    Role.ADMIN: lambda actor: f"Company: {actor.company_id}",
    Role.MANAGER: lambda actor: f"Store: {actor.store_id} (Company: {actor.company_id})",
    Role.STOREMAN: lambda actor: f"Store Operations: {actor.store_id}",
    Role.SALESMAN: lambda actor: f"Sales Territory: {actor.store_id}",
    Role.RETAILER: lambda actor: f"Retailer Account: {actor.retailer_id}",
}, "scope labels")


def current_scope_label(actor: Actor | None) -> str:
    """Human-readable scope description. Display only, not a security boundary."""
    if actor is None:
        return "No Access"
    return _SCOPE_LABELS[actor.role](actor)
