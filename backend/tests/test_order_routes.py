# Overview: Pytest coverage for the order and status-history HTTP endpoints.

import pytest

from partsdesk.services import order_service
from partsdesk.services.order_service import OrderPersistenceError


ITEMS = [{"part_number": "SP-001-NGK", "quantity": 2}]


def _create(client, headers, **body):
    payload = {"retailer_id": 1, "items": ITEMS}
    payload.update(body)
    return client.post("/api/orders", json=payload, headers=headers)


def _set_status(client, headers, order_id, status, notes=None):
    body = {"status": status}
    if notes is not None:
        body["notes"] = notes
    return client.patch(f"/api/orders/{order_id}/status", json=body, headers=headers)


class TestCreateOrderRoute:

    def test_salesman_creates_order_for_own_store(self, client, users, headers_for):
        response = _create(client, headers_for(users.salesman), urgent=True, remark="call on arrival")

        assert response.status_code == 201
        order = response.get_json()["order"]
        assert order["status"] == "New"
        assert order["store_code"] == "NYC001"
        assert order["urgent"] is True
        assert order["items"][0]["item_amount"] == 2338
        assert order["total_amount"] == 2338
        assert order["next_statuses"] == ["Cancelled", "Hold", "Pending"]

    def test_admin_must_name_store(self, client, users, headers_for):
        response = _create(client, headers_for(users.admin))
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_admin_other_company_store_is_scope_denied(self, client, users, headers_for):
        response = _create(client, headers_for(users.admin), store_code="LA001", retailer_id=3)
        assert response.status_code == 403
        assert response.get_json()["code"] == "SCOPE_DENIED"

    def test_retailer_cannot_create(self, client, users, headers_for):
        response = _create(client, headers_for(users.retailer), store_code="NYC001")
        assert response.status_code == 403
        assert response.get_json()["code"] == "PERMISSION_DENIED"

    def test_bad_quantity(self, client, users, headers_for):
        response = _create(
            client, headers_for(users.manager),
            items=[{"part_number": "SP-001-NGK", "quantity": 2.5}],
        )
        assert response.status_code == 400

    def test_nan_discount_is_400(self, client, users, headers_for):
        response = _create(
            client, headers_for(users.manager),
            items=[{"part_number": "SP-001-NGK", "quantity": 1, "basic_discount": "nan"}],
        )
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"


class TestReadOrderRoutes:

    def test_list_and_pagination(self, client, users, headers_for, make_order):
        for _ in range(3):
            make_order()

        response = client.get("/api/orders?limit=2", headers=headers_for(users.manager))

        assert response.status_code == 200
        body = response.get_json()
        assert len(body["orders"]) == 2
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["pages"] == 2

    def test_list_rejects_bad_filter(self, client, users, headers_for, world):
        response = client.get("/api/orders?status=Shipped", headers=headers_for(users.admin))
        assert response.status_code == 400

    def test_detail_404_and_403(self, client, users, headers_for, make_order):
        order = make_order()

        assert client.get("/api/orders/99999", headers=headers_for(users.admin)).status_code == 404

        response = client.get(f"/api/orders/{order.id}", headers=headers_for(users.la_storeman))
        assert response.status_code == 403
        assert response.get_json()["code"] == "SCOPE_DENIED"

    def test_retailer_reads_own_order(self, client, users, headers_for, make_order):
        order = make_order(retailer_id=1)
        response = client.get(f"/api/orders/{order.id}", headers=headers_for(users.retailer))
        assert response.status_code == 200
        assert response.get_json()["order"]["retailer_name"] == "Downtown Auto Parts"

    def test_stats_summary(self, client, users, headers_for, make_order):
        make_order(urgent=True)
        response = client.get("/api/orders/stats/summary", headers=headers_for(users.storeman))
        assert response.status_code == 200
        assert response.get_json()["urgent_orders"] == 1


class TestStatusRoutes:

    def test_walk_order_to_completion(self, client, users, headers_for, make_order):
        order = make_order()
        manager = headers_for(users.manager)
        storeman = headers_for(users.storeman)

        assert _set_status(client, manager, order.id, "Pending").status_code == 200
        response = _set_status(client, manager, order.id, "Processing", notes="stock confirmed")
        assert response.get_json()["order"]["confirmed_by"] == "Bob Manager"
        assert response.get_json()["order"]["remark"] == "stock confirmed"

        response = _set_status(client, storeman, order.id, "Picked")
        assert response.status_code == 409
        body = response.get_json()
        assert body["code"] == "ITEMS_NOT_PICKED"
        assert body["unpicked_parts"] == ["SP-001-NGK"]

        item_id = order.items[0].id
        response = client.patch(
            f"/api/orders/{order.id}/items/{item_id}", json={"picked": True}, headers=storeman
        )
        assert response.status_code == 200
        assert response.get_json()["item"]["picked_by"] == "Alice Storeman"

        for status in ("Picked", "Dispatched", "Completed"):
            response = _set_status(client, storeman, order.id, status)
            assert response.status_code == 200, response.get_json()

        detail = response.get_json()["order"]
        assert detail["status"] == "Completed"
        assert detail["next_statuses"] == []

        history = client.get(f"/api/order-status-history/{order.id}", headers=manager).get_json()
        assert [entry["status"] for entry in history["history"]] == [
            "Pending", "Processing", "Picked", "Dispatched", "Completed",
        ]
        assert history["history"][1]["notes"] == "stock confirmed"

    def test_invalid_transition_is_400(self, client, users, headers_for, make_order):
        order = make_order()
        response = _set_status(client, headers_for(users.admin), order.id, "Completed")
        assert response.status_code == 400
        assert response.get_json()["code"] == "INVALID_TRANSITION"

    def test_missing_status_is_400(self, client, users, headers_for, make_order):
        order = make_order()
        response = client.patch(f"/api/orders/{order.id}/status", json={}, headers=headers_for(users.admin))
        assert response.status_code == 400

    @pytest.mark.parametrize("notes", [5, ["call"], {"text": "call"}])
    def test_non_text_notes_are_400(self, client, users, actors, headers_for, make_order, notes):
        order = make_order()
        response = _set_status(client, headers_for(users.admin), order.id, "Pending", notes=notes)
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"
        assert order_service.get_order_for_actor(actors.admin, order.id).status == "New"

    @pytest.mark.parametrize("name", ["salesman", "retailer", "super_admin"])
    def test_roles_without_status_control(self, client, users, headers_for, make_order, name):
        order = make_order()
        response = _set_status(client, headers_for(getattr(users, name)), order.id, "Pending")
        assert response.status_code == 403
        assert response.get_json()["code"] == "PERMISSION_DENIED"

    def test_out_of_scope_status_change(self, client, users, headers_for, make_order):
        order = make_order()
        response = _set_status(client, headers_for(users.la_storeman), order.id, "Pending")
        assert response.status_code == 403
        assert response.get_json()["code"] == "SCOPE_DENIED"

    def test_picking_on_cancelled_order_conflicts(self, client, users, headers_for, make_order):
        order = make_order()
        admin = headers_for(users.admin)
        _set_status(client, admin, order.id, "Cancelled")
        response = client.patch(
            f"/api/orders/{order.id}/items/{order.items[0].id}", json={"picked": True}, headers=admin
        )
        assert response.status_code == 409
        assert response.get_json()["code"] == "CONFLICT"

    def test_unpicking_after_picked_conflicts(self, client, users, headers_for, make_order):
        order = make_order()
        item_id = order.items[0].id
        manager = headers_for(users.manager)
        storeman = headers_for(users.storeman)
        for status in ("Pending", "Processing"):
            _set_status(client, manager, order.id, status)
        client.patch(f"/api/orders/{order.id}/items/{item_id}", json={"picked": True}, headers=storeman)
        assert _set_status(client, storeman, order.id, "Picked").status_code == 200

        response = client.patch(
            f"/api/orders/{order.id}/items/{item_id}", json={"picked": False}, headers=storeman
        )
        assert response.status_code == 409
        assert response.get_json()["code"] == "CONFLICT"

    def test_persistence_failure_is_503(self, client, users, headers_for, make_order, monkeypatch):
        order = make_order()

        def failing_change(*args, **kwargs):
            raise OrderPersistenceError("Order status could not be saved; please retry")

        monkeypatch.setattr(order_service, "change_order_status", failing_change)

        response = _set_status(client, headers_for(users.admin), order.id, "Pending")
        assert response.status_code == 503
        body = response.get_json()
        assert body["code"] == "PERSISTENCE_FAILED"
        assert body["retryable"] is True


class TestHistoryStatsRoute:

    def test_manager_sees_counts(self, client, users, headers_for, make_order):
        order = make_order()
        admin = headers_for(users.admin)
        _set_status(client, admin, order.id, "Pending")

        response = client.get("/api/order-status-history/stats/summary?days=7", headers=headers_for(users.manager))
        assert response.status_code == 200
        body = response.get_json()
        assert body["days"] == 7
        assert body["total_changes"] == 1

    def test_storeman_denied(self, client, users, headers_for, world):
        response = client.get("/api/order-status-history/stats/summary", headers=headers_for(users.storeman))
        assert response.status_code == 403

    def test_days_out_of_range(self, client, users, headers_for, world):
        response = client.get("/api/order-status-history/stats/summary?days=400", headers=headers_for(users.admin))
        assert response.status_code == 400
