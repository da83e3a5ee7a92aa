# Overview: Pytest coverage for order creation, picking, status changes and history.

"""
Order Service Tests

Status changes are two-phase: the proposal is computed first and only a
successful persist changes what other readers see. These tests cover the
happy path, every rejection, the stale-status conflict and the rollback
when the database keeps failing.
"""

import pytest
from sqlalchemy.exc import OperationalError

from partsdesk.extensions import db
from partsdesk.models import Order, OrderItem, OrderStatusHistory, SecurityEvent
from partsdesk.services import order_service
from partsdesk.services.lifecycle_service import InvalidTransition, ItemsNotPicked, Unauthorized
from partsdesk.services.order_service import (
    OrderConflictError,
    OrderNotFound,
    OrderPersistenceError,
    OrderTransitionError,
)
from partsdesk.services.permission_service import PermissionDeniedError
from partsdesk.services.scope_service import ScopeDenied
from partsdesk.validation import ConflictError, ValidationError


def _advance(actor, order, *targets, user=None):
    for target in targets:
        order = order_service.change_order_status(actor, order.id, target, user=user)
    return order


def _pick_all(actor, order, user=None):
    for item in order.items:
        order_service.set_item_picked(actor, order.id, item.id, True, user=user)


class TestCreateOrder:

    def test_creates_new_order_with_amounts(self, make_order):
        order = make_order(items=[
            {"part_number": "SP-001-NGK", "quantity": 2},
            {"part_number": "OF-003-MANN", "quantity": 3, "mrp": 1000, "basic_discount": 10},
        ])

        assert order.status == "New"
        assert order.crm_order_id.startswith("CRM-")
        assert [item.line_no for item in order.items] == [1, 2]
        # 1299 * 2 * (1 - 10/100)
        assert order.items[0].item_amount == round(1299 * 2 * 0.9)
        assert order.items[1].item_amount == 2700
        assert order.total_amount == order.items[0].item_amount + 2700

    def test_crm_ids_are_unique(self, make_order):
        ids = {make_order().crm_order_id for _ in range(5)}
        assert len(ids) == 5

    def test_store_role_orders_for_own_store(self, actors, users):
        order = order_service.create_order(
            actors.salesman, 1, [{"part_number": "SP-001-NGK", "quantity": 1}], user_id=users.salesman.id
        )
        assert order.store_code == "NYC001"

    def test_store_role_cannot_order_for_other_store(self, actors):
        with pytest.raises(ScopeDenied):
            order_service.create_order(
                actors.salesman, 1, [{"part_number": "SP-001-NGK", "quantity": 1}], store_code="NYC002"
            )

    def test_admin_cannot_order_for_other_company_store(self, actors):
        with pytest.raises(ScopeDenied):
            order_service.create_order(
                actors.admin, 3, [{"part_number": "SP-001-NGK", "quantity": 1}], store_code="LA001"
            )
        assert db.session.query(SecurityEvent).filter_by(event_type="SCOPE_DENIED").count() == 1

    @pytest.mark.parametrize("name", ["super_admin", "retailer"])
    def test_roles_without_order_capability(self, actors, name):
        with pytest.raises(PermissionDeniedError):
            order_service.create_order(
                getattr(actors, name), 1, [{"part_number": "SP-001-NGK", "quantity": 1}], store_code="NYC001"
            )

    @pytest.mark.parametrize("items", [
        [],
        [{"part_number": "NOPE", "quantity": 1}],
        [{"part_number": "SP-001-NGK", "quantity": 0}],
        [{"part_number": "SP-001-NGK", "quantity": "1.5"}],
        [{"part_number": "SP-001-NGK", "quantity": 1, "basic_discount": 150}],
        [{"part_number": "SP-001-NGK", "quantity": 1, "basic_discount": 60, "scheme_discount": 50}],
        [{"part_number": "SP-001-NGK", "quantity": 1, "basic_discount": "nan"}],
        [{"part_number": "SP-001-NGK", "quantity": 1, "scheme_discount": "inf"}],
        [{"part_number": 5, "quantity": 1}],
    ])
    def test_invalid_items_rejected(self, make_order, items):
        with pytest.raises(ValidationError):
            make_order(items=items)
        assert db.session.query(Order).count() == 0

    def test_unknown_retailer_is_denied(self, make_order):
        with pytest.raises(ScopeDenied):
            make_order(retailer_id=999)


class TestReadOrders:

    def test_out_of_scope_order_is_denied(self, make_order, actors):
        order = make_order()
        with pytest.raises(ScopeDenied):
            order_service.get_order_for_actor(actors.la_storeman, order.id)

    def test_missing_order(self, actors, world):
        with pytest.raises(OrderNotFound):
            order_service.get_order_for_actor(actors.super_admin, 12345)

    def test_retailer_sees_only_own_orders(self, make_order, actors):
        own = make_order(retailer_id=1)
        other = make_order(retailer_id=2)

        assert order_service.get_order_for_actor(actors.retailer, own.id).id == own.id
        with pytest.raises(ScopeDenied):
            order_service.get_order_for_actor(actors.retailer, other.id)

    def test_list_is_scoped(self, make_order, actors):
        make_order(store_code="NYC001")
        make_order(store_code="NYC002", retailer_id=2)
        make_order(store_code="LA001", retailer_id=3, actor=actors.admin2)

        def codes(actor):
            orders, _ = order_service.list_orders(actor)
            return sorted(order.store_code for order in orders)

        assert codes(actors.super_admin) == ["LA001", "NYC001", "NYC002"]
        assert codes(actors.admin) == ["NYC001", "NYC002"]
        assert codes(actors.manager) == ["NYC001"]
        assert codes(actors.la_storeman) == ["LA001"]
        assert codes(actors.retailer) == ["NYC001"]

    def test_list_filters_and_pagination(self, make_order, actors):
        make_order(urgent=True)
        make_order()
        make_order(store_code="NYC002", retailer_id=2)

        orders, pagination = order_service.list_orders(actors.admin, {"urgent": "true"})
        assert len(orders) == 1 and orders[0].urgent

        orders, _ = order_service.list_orders(actors.admin, {"branch": "NYC002"})
        assert [order.store_code for order in orders] == ["NYC002"]

        orders, pagination = order_service.list_orders(actors.admin, page=2, limit=2)
        assert len(orders) == 1
        assert pagination == {"page": 2, "limit": 2, "total": 3, "pages": 2}

    def test_list_newest_first(self, make_order, actors):
        first = make_order()
        second = make_order()
        orders, _ = order_service.list_orders(actors.admin)
        assert [order.id for order in orders] == [second.id, first.id]

    def test_list_rejects_unknown_status(self, actors, world):
        with pytest.raises(ValidationError):
            order_service.list_orders(actors.admin, {"status": "Shipped"})

    def test_stats(self, make_order, actors, users):
        order = make_order(urgent=True)
        make_order(store_code="NYC002", retailer_id=2)
        order_service.change_order_status(actors.admin, order.id, "Pending", user=users.admin)

        stats = order_service.order_stats(actors.admin)
        assert stats["total_orders"] == 2
        assert stats["new_orders"] == 1
        assert stats["urgent_orders"] == 1
        assert stats["unique_retailers"] == 2

        assert order_service.order_stats(actors.manager)["total_orders"] == 1


class TestItemPicking:

    def test_pick_records_picker(self, make_order, actors, users):
        order = make_order()
        item = order_service.set_item_picked(actors.storeman, order.id, order.items[0].id, True, user=users.storeman)
        assert item.picked
        assert item.picked_by == "Alice Storeman"
        assert item.picked_at is not None

        item = order_service.set_item_picked(actors.storeman, order.id, item.id, False, user=users.storeman)
        assert not item.picked
        assert item.picked_by is None

    def test_salesman_cannot_pick(self, make_order, actors):
        order = make_order()
        with pytest.raises(PermissionDeniedError):
            order_service.set_item_picked(actors.salesman, order.id, order.items[0].id, True)

    def test_terminal_order_items_locked(self, make_order, actors):
        order = make_order()
        order_service.change_order_status(actors.admin, order.id, "Cancelled")
        with pytest.raises(ConflictError):
            order_service.set_item_picked(actors.admin, order.id, order.items[0].id, True)

    def test_item_must_belong_to_order(self, make_order, actors):
        first = make_order()
        second = make_order()
        with pytest.raises(OrderNotFound):
            order_service.set_item_picked(actors.admin, first.id, second.items[0].id, True)

    @pytest.mark.parametrize("targets", [("Picked",), ("Picked", "Dispatched")])
    def test_no_unpicking_after_picked(self, make_order, actors, targets):
        order = make_order()
        order = _advance(actors.admin, order, "Pending", "Processing")
        _pick_all(actors.admin, order)
        order = _advance(actors.admin, order, *targets)
        item_id = order.items[0].id

        with pytest.raises(ConflictError):
            order_service.set_item_picked(actors.admin, order.id, item_id, False)
        assert db.session.get(OrderItem, item_id).picked


class TestChangeOrderStatus:

    def test_full_lifecycle_with_history_and_stage_stamps(self, make_order, actors, users):
        order = make_order()
        order = _advance(actors.manager, order, "Pending", "Processing", user=users.manager)
        _pick_all(actors.storeman, order, user=users.storeman)
        order = _advance(actors.storeman, order, "Picked", "Dispatched", "Completed", user=users.storeman)

        assert order.status == "Completed"
        assert order.confirmed_by == "Bob Manager"
        assert order.picked_by == "Alice Storeman"
        assert order.packed_by == "Alice Storeman"
        assert order.delivered_by == "Alice Storeman"

        history = order_service.status_history(actors.admin, order.id)
        assert [(entry.previous_status, entry.status) for entry in history] == [
            ("New", "Pending"),
            ("Pending", "Processing"),
            ("Processing", "Picked"),
            ("Picked", "Dispatched"),
            ("Dispatched", "Completed"),
        ]
        timestamps = [entry.occurred_at for entry in history]
        assert timestamps == sorted(timestamps)
        assert history[0].updated_by_role == "manager"

    def test_notes_become_remark(self, make_order, actors):
        order = make_order(remark="deliver before noon")
        order = order_service.change_order_status(actors.admin, order.id, "Hold", "")
        assert order.remark == "deliver before noon"
        order = order_service.change_order_status(actors.admin, order.id, "Pending", "customer called")
        assert order.remark == "customer called"
        assert order.history[-1].notes == "customer called"

    def test_invalid_transition_rejected(self, make_order, actors):
        order = make_order()
        with pytest.raises(OrderTransitionError) as excinfo:
            order_service.change_order_status(actors.admin, order.id, "Dispatched")
        assert isinstance(excinfo.value.error, InvalidTransition)
        assert db.session.query(OrderStatusHistory).count() == 0

    def test_items_not_picked(self, make_order, actors):
        order = _advance(actors.admin, make_order(), "Pending", "Processing")
        with pytest.raises(OrderTransitionError) as excinfo:
            order_service.change_order_status(actors.admin, order.id, "Picked")
        assert isinstance(excinfo.value.error, ItemsNotPicked)
        assert excinfo.value.error.unpicked_parts == ("SP-001-NGK",)

    def test_salesman_unauthorized(self, make_order, actors):
        order = make_order()
        with pytest.raises(OrderTransitionError) as excinfo:
            order_service.change_order_status(actors.salesman, order.id, "Pending")
        assert isinstance(excinfo.value.error, Unauthorized)

    def test_out_of_scope_status_change(self, make_order, actors):
        order = make_order()
        with pytest.raises(ScopeDenied):
            order_service.change_order_status(actors.la_storeman, order.id, "Pending")
        assert db.session.get(Order, order.id).status == "New"

    def test_stale_status_is_a_conflict(self, make_order, actors, monkeypatch):
        order = make_order()
        original_to_state = Order.to_state

        def racing_to_state(self):
            snapshot = original_to_state(self)
            # Another writer moves the order after our snapshot was taken
            db.session.execute(
                Order.__table__.update().where(Order.id == self.id).values(status="Hold")
            )
            return snapshot

        monkeypatch.setattr(Order, "to_state", racing_to_state)

        with pytest.raises(OrderConflictError):
            order_service.change_order_status(actors.admin, order.id, "Pending")
        assert db.session.query(OrderStatusHistory).count() == 0

    def test_item_unpicked_after_snapshot_blocks_picked(self, make_order, actors, monkeypatch):
        order = make_order(items=[
            {"part_number": "SP-001-NGK", "quantity": 1},
            {"part_number": "OF-003-MANN", "quantity": 1},
        ])
        order = _advance(actors.admin, order, "Pending", "Processing")
        _pick_all(actors.admin, order)
        order_id = order.id
        item_id = order.items[1].id

        original_to_state = Order.to_state
        raced = []

        def racing_to_state(self):
            snapshot = original_to_state(self)
            if not raced:
                raced.append(1)
                # Another picker takes a line back after our snapshot saw it picked
                db.session.execute(
                    OrderItem.__table__.update().where(OrderItem.id == item_id).values(picked=False)
                )
                db.session.commit()
            return snapshot

        monkeypatch.setattr(Order, "to_state", racing_to_state)

        with pytest.raises(OrderTransitionError) as excinfo:
            order_service.change_order_status(actors.admin, order_id, "Picked")
        monkeypatch.undo()

        assert isinstance(excinfo.value.error, ItemsNotPicked)
        assert excinfo.value.error.unpicked_parts == ("OF-003-MANN",)
        assert db.session.get(Order, order_id).status == "Processing"
        assert db.session.query(OrderStatusHistory).filter_by(order_id=order_id, status="Picked").count() == 0

    def test_persistence_failure_leaves_order_unchanged(self, app, make_order, actors, monkeypatch):
        order = make_order()
        order_id = order.id
        calls = []

        def failing_commit():
            calls.append(1)
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db.session, "commit", failing_commit)

        with pytest.raises(OrderPersistenceError) as excinfo:
            order_service.change_order_status(actors.admin, order_id, "Pending", "will not stick")

        monkeypatch.undo()

        assert excinfo.value.retryable
        assert len(calls) == app.config["ORDER_STATUS_RETRY_ATTEMPTS"]
        reloaded = db.session.get(Order, order_id)
        assert reloaded.status == "New"
        assert reloaded.remark is None
        assert db.session.query(OrderStatusHistory).filter_by(order_id=order_id).count() == 0

    def test_transient_failure_is_retried(self, make_order, actors, monkeypatch):
        order = make_order()
        real_commit = db.session.commit
        failures = []

        def flaky_commit():
            if not failures:
                failures.append(1)
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            return real_commit()

        monkeypatch.setattr(db.session, "commit", flaky_commit)
        updated = order_service.change_order_status(actors.admin, order.id, "Pending")
        monkeypatch.undo()

        assert updated.status == "Pending"
        assert db.session.query(OrderStatusHistory).filter_by(order_id=order.id).count() == 1


class TestStatusHistoryStats:

    def test_counts_by_status_and_transition(self, make_order, actors):
        first = make_order()
        second = make_order()
        _advance(actors.admin, first, "Pending", "Hold")
        _advance(actors.admin, second, "Pending")

        stats = order_service.status_history_stats(actors.admin, 30)
        assert stats["total_changes"] == 3
        assert stats["by_status"] == {"Pending": 2, "Hold": 1}
        assert {"from": "New", "to": "Pending", "count": 2} in stats["transitions"]

    def test_scoped_to_actor(self, make_order, actors):
        order = make_order(store_code="LA001", retailer_id=3, actor=actors.admin2)
        _advance(actors.admin2, order, "Pending")

        assert order_service.status_history_stats(actors.admin)["total_changes"] == 0
        assert order_service.status_history_stats(actors.super_admin)["total_changes"] == 1

    def test_requires_reporting_role(self, actors, world):
        with pytest.raises(PermissionDeniedError):
            order_service.status_history_stats(actors.storeman)
