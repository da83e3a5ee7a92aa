# backend/partsdesk/services/parts_service.py
"""
Parts Catalogue Service

The catalogue is shared by every company; any signed-in role may read it.
Order lines copy MRP and default discounts from here at order time.

Changes to the catalogue and its stock levels need MANAGE_INVENTORY.
"""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Part
from ..validation import (
    ValidationError,
    ConflictError,
    MAX_MRP,
    coerce_int,
    coerce_bool,
    coerce_discount,
    coerce_text,
)
from partsdesk.permissions import Actor, MANAGE_INVENTORY, roles_with
from .permission_service import require_role


def list_parts(
    search: str | None = None,
    category: str | None = None,
    page=None,
    per_page=None,
    include_inactive: bool = False,
) -> dict:
    """
    Catalogue listing with optional search and pagination.

    search matches part number or name (case-insensitive substring).
    Without page, all matching parts are returned.
    """
    query = db.session.query(Part)
    if not include_inactive:
        query = query.filter(Part.is_active.is_(True))
    if category:
        query = query.filter(Part.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Part.part_number.ilike(pattern), Part.name.ilike(pattern)))

    query = query.order_by(Part.part_number.asc())

    if page in (None, ""):
        parts = query.all()
        return {"items": [part.to_dict() for part in parts], "count": len(parts)}

    page = coerce_int("page", page, minimum=1)
    per_page = coerce_int("per_page", per_page if per_page not in (None, "") else 20, minimum=1, maximum=100)
    total = query.count()
    parts = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [part.to_dict() for part in parts],
        "count": len(parts),
        "page": page,
        "per_page": per_page,
        "total": total,
    }


def get_part(part_number: str) -> Part | None:
    return db.session.get(Part, part_number)


# -- INVENTORY --

INVENTORY_ROLES = roles_with(MANAGE_INVENTORY)

DISCOUNT_FIELDS = ("basic_discount", "scheme_discount", "additional_discount")


def _apply_part_fields(part: Part, data: dict) -> None:
    """Validate every field present in data, then write them all or none."""
    changes = {}
    if "name" in data:
        changes["name"] = coerce_text("name", data["name"], required=True)
    if "category" in data:
        changes["category"] = coerce_text("category", data["category"]) or None
    if "price" in data:
        changes["price"] = coerce_int("price", data["price"], minimum=0, maximum=MAX_MRP)
    for name in ("min_qty", "stock_qty"):
        if name in data:
            changes[name] = coerce_int(name, data[name], minimum=0)
    for name in DISCOUNT_FIELDS:
        if name in data:
            changes[name] = coerce_discount(name, data[name])
    if "is_active" in data:
        changes["is_active"] = coerce_bool("is_active", data["is_active"])

    total_discount = sum(float(changes.get(name, getattr(part, name)) or 0) for name in DISCOUNT_FIELDS)
    if total_discount > 100:
        raise ValidationError("total discount exceeds 100%")

    for name, value in changes.items():
        setattr(part, name, value)


def create_part(actor: Actor, data: dict, *, user_id: int | None = None) -> Part:
    require_role(actor, INVENTORY_ROLES, action="create_part", user_id=user_id)

    part_number = coerce_text("part_number", data.get("part_number"), required=True).upper()
    if db.session.get(Part, part_number) is not None:
        raise ConflictError(f"Part '{part_number}' already exists")
    if "name" not in data:
        raise ValidationError("name is required")

    part = Part(
        part_number=part_number,
        price=0,
        min_qty=0,
        stock_qty=0,
        basic_discount=0,
        scheme_discount=0,
        additional_discount=0,
        is_active=True,
    )
    _apply_part_fields(part, data)
    db.session.add(part)
    db.session.commit()
    return part


def update_part(actor: Actor, part_number: str, data: dict, *, user_id: int | None = None) -> Part | None:
    """Partial update; the part number itself never changes. Returns None if missing."""
    require_role(actor, INVENTORY_ROLES, action="update_part", user_id=user_id)
    part = db.session.get(Part, part_number)
    if part is None:
        return None

    _apply_part_fields(part, {key: value for key, value in data.items() if key != "part_number"})
    db.session.commit()
    return part


def set_stock(actor: Actor, part_number: str, stock_qty, *, user_id: int | None = None) -> Part | None:
    require_role(actor, INVENTORY_ROLES, action="update_stock", user_id=user_id)
    part = db.session.get(Part, part_number)
    if part is None:
        return None

    part.stock_qty = coerce_int("stock_qty", stock_qty, minimum=0)
    db.session.commit()
    return part


def list_categories() -> list[dict]:
    """Distinct active-part categories with their part counts, alphabetical."""
    rows = (
        db.session.query(Part.category, func.count(Part.part_number))
        .filter(Part.is_active.is_(True), Part.category.isnot(None), Part.category != "")
        .group_by(Part.category)
        .order_by(Part.category.asc())
        .all()
    )
    return [{"category": category, "count": count} for category, count in rows]


def low_stock_parts(actor: Actor, *, user_id: int | None = None) -> list[Part]:
    """Active parts at or below their minimum quantity, emptiest first."""
    require_role(actor, INVENTORY_ROLES, action="view_low_stock", user_id=user_id)
    return (
        db.session.query(Part)
        .filter(Part.is_active.is_(True), Part.stock_qty <= Part.min_qty)
        .order_by(Part.stock_qty.asc(), Part.part_number.asc())
        .all()
    )
