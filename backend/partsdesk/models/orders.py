from __future__ import annotations

from ..extensions import db
from partsdesk.permissions.roles import Role
from partsdesk.services.lifecycle_service import (
    OrderStatus,
    OrderState,
    ItemState,
    StatusHistoryEntry,
)
from partsdesk.time_utils import to_utc_z


class Part(db.Model):
    """
    Catalogue entry for a spare part.

    price is the MRP in whole currency units; the three discount columns are
    the default percentages applied when the part is ordered. A part is low
    on stock once stock_qty drops to min_qty or below.
    """
    __tablename__ = "parts"

    part_number = db.Column(db.String(100), primary_key=True)
    name = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    price = db.Column(db.Integer, nullable=False, default=0)
    min_qty = db.Column(db.Integer, nullable=False, default=0)
    stock_qty = db.Column(db.Integer, nullable=False, default=0)
    basic_discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    scheme_discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    additional_discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "part_number": self.part_number,
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "min_qty": self.min_qty,
            "stock_qty": self.stock_qty,
            "basic_discount": float(self.basic_discount or 0),
            "scheme_discount": float(self.scheme_discount or 0),
            "additional_discount": float(self.additional_discount or 0),
            "is_active": self.is_active,
        }


class Order(db.Model):
    """
    Purchase order placed by (or on behalf of) a retailer at a branch.

    LIFECYCLE: status only changes through order_service.change_order_status,
    which validates the move with lifecycle_service and appends one
    OrderStatusHistory row per successful change. Orders are never deleted;
    they end in Completed or Cancelled.

    Stage columns (confirmed/picked/packed/delivered by + at) record who moved
    the order into Processing, Picked, Dispatched and Completed.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_store_status", "store_code", "status"),
        db.Index("ix_orders_retailer", "retailer_id"),
        db.Index("ix_orders_placed_at", "placed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    crm_order_id = db.Column(db.String(25), nullable=False, unique=True)

    retailer_id = db.Column(db.Integer, db.ForeignKey("retailers.id"), nullable=False)
    store_code = db.Column(db.String(15), db.ForeignKey("stores.code"), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=OrderStatus.NEW.value)
    urgent = db.Column(db.Boolean, nullable=False, default=False)
    remark = db.Column(db.Text, nullable=True)

    po_number = db.Column(db.String(50), nullable=True)
    po_date = db.Column(db.DateTime(timezone=True), nullable=True)

    placed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    placed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    confirmed_by = db.Column(db.String(255), nullable=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    picked_by = db.Column(db.String(255), nullable=True)
    picked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    packed_by = db.Column(db.String(255), nullable=True)
    packed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_by = db.Column(db.String(255), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    retailer = db.relationship("Retailer", backref=db.backref("orders", lazy=True))
    store = db.relationship("Store", backref=db.backref("orders", lazy=True))
    placed_by = db.relationship("User", foreign_keys=[placed_by_user_id])
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.line_no",
        cascade="all, delete-orphan",
    )
    history = db.relationship(
        "OrderStatusHistory",
        backref="order",
        lazy=True,
        order_by="[OrderStatusHistory.occurred_at, OrderStatusHistory.id]",
        cascade="all, delete-orphan",
    )

    @property
    def total_amount(self) -> int:
        return sum(item.item_amount or 0 for item in self.items)

    def to_state(self) -> OrderState:
        """Immutable snapshot handed to lifecycle_service.transition."""
        return OrderState(
            id=self.id,
            status=OrderStatus(self.status),
            items=tuple(item.to_state() for item in self.items),
            urgent=bool(self.urgent),
            remark=self.remark,
            status_history=tuple(entry.to_state() for entry in self.history),
        )

    def to_dict(self, *, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "crm_order_id": self.crm_order_id,
            "retailer_id": self.retailer_id,
            "retailer_name": self.retailer.name if self.retailer else None,
            "store_code": self.store_code,
            "store_name": self.store.name if self.store else None,
            "company_id": self.store.company_id if self.store else None,
            "status": self.status,
            "urgent": self.urgent,
            "remark": self.remark,
            "po_number": self.po_number,
            "po_date": to_utc_z(self.po_date),
            "placed_by_user_id": self.placed_by_user_id,
            "placed_at": to_utc_z(self.placed_at),
            "confirmed_by": self.confirmed_by,
            "confirmed_at": to_utc_z(self.confirmed_at),
            "picked_by": self.picked_by,
            "picked_at": to_utc_z(self.picked_at),
            "packed_by": self.packed_by,
            "packed_at": to_utc_z(self.packed_at),
            "delivered_by": self.delivered_by,
            "delivered_at": to_utc_z(self.delivered_at),
            "total_amount": self.total_amount,
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    One line of an order. Owned by its order; no lifecycle of its own beyond
    the picked flag that gates Processing -> Picked.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.UniqueConstraint("order_id", "line_no", name="uq_order_items_order_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    line_no = db.Column(db.Integer, nullable=False)

    part_number = db.Column(db.String(100), db.ForeignKey("parts.part_number"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    dispatch_qty = db.Column(db.Integer, nullable=False, default=0)

    mrp = db.Column(db.Integer, nullable=False)
    basic_discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    scheme_discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    additional_discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    item_amount = db.Column(db.Integer, nullable=False)

    urgent = db.Column(db.Boolean, nullable=False, default=False)

    picked = db.Column(db.Boolean, nullable=False, default=False)
    picked_by = db.Column(db.String(255), nullable=True)
    picked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    part = db.relationship("Part")

    def to_state(self) -> ItemState:
        return ItemState(
            part_number=self.part_number,
            quantity=self.quantity,
            unit_price=self.mrp,
            basic_discount=float(self.basic_discount or 0),
            scheme_discount=float(self.scheme_discount or 0),
            additional_discount=float(self.additional_discount or 0),
            picked=bool(self.picked),
            item_id=self.id,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "line_no": self.line_no,
            "part_number": self.part_number,
            "part_name": self.part.name if self.part else None,
            "quantity": self.quantity,
            "dispatch_qty": self.dispatch_qty,
            "mrp": self.mrp,
            "basic_discount": float(self.basic_discount or 0),
            "scheme_discount": float(self.scheme_discount or 0),
            "additional_discount": float(self.additional_discount or 0),
            "item_amount": self.item_amount,
            "urgent": self.urgent,
            "picked": self.picked,
            "picked_by": self.picked_by,
            "picked_at": to_utc_z(self.picked_at),
        }


class OrderStatusHistory(db.Model):
    """
    One row per successful status change.

    IMMUTABLE: Append-only. Rows are written in the same transaction as the
    status change they describe.
    """
    __tablename__ = "order_status_history"
    __table_args__ = (
        db.Index("ix_order_status_history_order", "order_id", "occurred_at"),
        db.Index("ix_order_status_history_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)

    status = db.Column(db.String(20), nullable=False)
    previous_status = db.Column(db.String(20), nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_role = db.Column(db.String(20), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    updated_by = db.relationship("User")

    def to_state(self) -> StatusHistoryEntry:
        return StatusHistoryEntry(
            status=OrderStatus(self.status),
            timestamp=self.occurred_at,
            actor_role=Role(self.updated_by_role),
            notes=self.notes or "",
            previous_status=OrderStatus(self.previous_status) if self.previous_status else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": self.status,
            "previous_status": self.previous_status,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_by": self.updated_by.name if self.updated_by else None,
            "updated_by_role": self.updated_by_role,
            "notes": self.notes,
            "timestamp": to_utc_z(self.occurred_at),
        }
