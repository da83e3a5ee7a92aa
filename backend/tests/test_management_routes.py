# Overview: Pytest coverage for user, inventory, retailer and organisation management endpoints.

"""
Management endpoint tests.

Verifies:
- MANAGE_USERS holders only reach users inside their scope and only hand
  out roles they may grant
- MANAGE_INVENTORY gates catalogue and stock changes
- Retailer changes need the retailer's home store in scope
- Companies and stores can be updated, and deleted only while empty
"""

import pytest

from partsdesk.extensions import db
from partsdesk.models import Part, Retailer, SessionToken, Store, User

PASSWORD = "Password123!"


def _json(resp):
    return resp.get_json()


# =============================================================================
# USERS
# =============================================================================


class TestUserAdministration:

    @pytest.mark.parametrize("name,expected", [
        ("super_admin", 8),
        ("admin", 5),
        ("manager", 3),
    ])
    def test_listing_is_scoped(self, client, users, headers_for, name, expected):
        resp = client.get("/api/users", headers=headers_for(getattr(users, name)))
        assert resp.status_code == 200
        assert _json(resp)["pagination"]["total"] == expected

    def test_admin_sees_company_staff_and_retailer_logins(self, client, users, headers_for):
        resp = client.get("/api/users?limit=50", headers=headers_for(users.admin))
        emails = sorted(user["email"] for user in _json(resp)["users"])
        assert emails == [
            "admin@company1.test",
            "alice@nyc001.test",
            "charlie@nyc001.test",
            "manager@nyc001.test",
            "retailer@downtown.test",
        ]

    def test_list_filters(self, client, users, headers_for):
        resp = client.get("/api/users?role=storeman", headers=headers_for(users.super_admin))
        assert sorted(user["email"] for user in _json(resp)["users"]) == ["alice@nyc001.test", "lee@la001.test"]

        resp = client.get("/api/users?search=charlie", headers=headers_for(users.admin))
        assert [user["email"] for user in _json(resp)["users"]] == ["charlie@nyc001.test"]

    @pytest.mark.parametrize("name", ["storeman", "salesman", "retailer"])
    def test_roles_without_user_management(self, client, users, headers_for, name):
        resp = client.get("/api/users", headers=headers_for(getattr(users, name)))
        assert resp.status_code == 403
        assert _json(resp)["code"] == "PERMISSION_DENIED"

    def test_manager_creates_salesman_in_own_store(self, client, users, headers_for):
        resp = client.post(
            "/api/users",
            json={"name": "New Seller", "email": "Seller@NYC001.test", "password": PASSWORD, "role": "salesman"},
            headers=headers_for(users.manager),
        )
        assert resp.status_code == 201
        user = _json(resp)["user"]
        assert user["email"] == "seller@nyc001.test"
        assert user["company_id"] == "1"
        assert user["store_id"] == "NYC001"

    @pytest.mark.parametrize("who,body,code", [
        ("manager", {"role": "admin"}, "PERMISSION_DENIED"),
        ("manager", {"role": "storeman", "store_id": "NYC002"}, "SCOPE_DENIED"),
        ("admin", {"role": "super_admin"}, "PERMISSION_DENIED"),
        ("admin", {"role": "storeman", "company_id": "2", "store_id": "LA001"}, "SCOPE_DENIED"),
        ("admin", {"role": "retailer", "retailer_id": 3}, "SCOPE_DENIED"),
    ])
    def test_creation_outside_reach_is_denied(self, client, users, headers_for, who, body, code):
        payload = {"name": "Someone", "email": "someone@test.local", "password": PASSWORD}
        payload.update(body)
        resp = client.post("/api/users", json=payload, headers=headers_for(getattr(users, who)))
        assert resp.status_code == 403
        assert _json(resp)["code"] == code

    def test_admin_creates_retailer_login(self, client, users, headers_for):
        resp = client.post(
            "/api/users",
            json={"name": "Quick Fix", "email": "owner@quickfix.test", "password": PASSWORD,
                  "role": "retailer", "retailer_id": 2},
            headers=headers_for(users.admin),
        )
        assert resp.status_code == 201
        assert _json(resp)["user"]["retailer_id"] == 2
        assert _json(resp)["user"]["company_id"] is None

    def test_weak_password_is_400(self, client, users, headers_for):
        resp = client.post(
            "/api/users",
            json={"name": "Weak", "email": "weak@test.local", "password": "password", "role": "salesman"},
            headers=headers_for(users.manager),
        )
        assert resp.status_code == 400

    def test_point_read_is_scoped(self, client, users, headers_for):
        admin = headers_for(users.admin)
        assert client.get(f"/api/users/{users.storeman.id}", headers=admin).status_code == 200
        resp = client.get(f"/api/users/{users.admin2.id}", headers=admin)
        assert resp.status_code == 403
        assert _json(resp)["code"] == "SCOPE_DENIED"

    def test_manager_renames_storeman(self, client, users, headers_for):
        resp = client.put(
            f"/api/users/{users.storeman.id}", json={"name": "Alice Picker"}, headers=headers_for(users.manager)
        )
        assert resp.status_code == 200
        assert _json(resp)["user"]["name"] == "Alice Picker"

    def test_manager_cannot_touch_admin(self, client, users, headers_for):
        resp = client.put(f"/api/users/{users.admin.id}", json={"name": "X"}, headers=headers_for(users.manager))
        assert resp.status_code == 403

    def test_duplicate_email_conflicts(self, client, users, headers_for):
        resp = client.put(
            f"/api/users/{users.storeman.id}",
            json={"email": "charlie@nyc001.test"},
            headers=headers_for(users.admin),
        )
        assert resp.status_code == 409
        assert db.session.get(User, users.storeman.id).email == "alice@nyc001.test"

    def test_deactivation_signs_user_out(self, client, users, headers_for):
        storeman = headers_for(users.storeman)
        resp = client.patch(
            f"/api/users/{users.storeman.id}/status", json={"is_active": False}, headers=headers_for(users.admin)
        )
        assert resp.status_code == 200
        assert _json(resp)["user"]["is_active"] is False

        sessions = db.session.query(SessionToken).filter_by(user_id=users.storeman.id).all()
        assert sessions and all(session.is_revoked for session in sessions)
        assert client.get("/api/auth/me", headers=storeman).status_code == 401

    def test_cannot_deactivate_self(self, client, users, headers_for):
        resp = client.patch(
            f"/api/users/{users.admin.id}/status", json={"is_active": False}, headers=headers_for(users.admin)
        )
        assert resp.status_code == 400

    def test_status_must_be_boolean(self, client, users, headers_for):
        resp = client.patch(
            f"/api/users/{users.storeman.id}/status", json={"is_active": "no"}, headers=headers_for(users.admin)
        )
        assert resp.status_code == 400

    def test_stats(self, client, users, headers_for):
        resp = client.get("/api/users/stats/summary", headers=headers_for(users.admin))
        assert resp.status_code == 200
        stats = _json(resp)
        assert stats["total_users"] == 5
        assert stats["retailer_users"] == 1
        assert stats["staff_users"] == 4

        assert client.get("/api/users/stats/summary", headers=headers_for(users.manager)).status_code == 403


# =============================================================================
# PARTS INVENTORY
# =============================================================================


class TestInventory:

    def test_storeman_creates_part(self, client, users, headers_for):
        resp = client.post(
            "/api/parts",
            json={"part_number": "bp-010-bosch", "name": "Bosch Brake Pad", "category": "Brakes",
                  "price": 2499, "min_qty": 5, "stock_qty": 2},
            headers=headers_for(users.storeman),
        )
        assert resp.status_code == 201
        part = _json(resp)["part"]
        assert part["part_number"] == "BP-010-BOSCH"
        assert part["stock_qty"] == 2

    def test_salesman_cannot_change_catalogue(self, client, users, headers_for):
        salesman = headers_for(users.salesman)
        assert client.post("/api/parts", json={"part_number": "X", "name": "X"}, headers=salesman).status_code == 403
        assert client.patch("/api/parts/SP-001-NGK/stock", json={"stock_qty": 1}, headers=salesman).status_code == 403
        assert client.get("/api/parts/alerts/low-stock", headers=salesman).status_code == 403

    def test_duplicate_part_conflicts(self, client, users, headers_for):
        resp = client.post(
            "/api/parts", json={"part_number": "SP-001-NGK", "name": "Again"}, headers=headers_for(users.manager)
        )
        assert resp.status_code == 409

    def test_update_part(self, client, users, headers_for):
        manager = headers_for(users.manager)
        resp = client.put("/api/parts/SP-001-NGK", json={"price": 1399}, headers=manager)
        assert resp.status_code == 200
        assert _json(resp)["part"]["price"] == 1399

        assert client.put("/api/parts/NOPE", json={"price": 1}, headers=manager).status_code == 404

    def test_update_rejecting_discounts_changes_nothing(self, client, users, headers_for):
        resp = client.put(
            "/api/parts/SP-001-NGK", json={"price": 1, "basic_discount": 99}, headers=headers_for(users.manager)
        )
        assert resp.status_code == 400
        db.session.rollback()
        assert db.session.get(Part, "SP-001-NGK").price == 1299

    def test_stock_and_low_stock_alerts(self, client, users, headers_for):
        storeman = headers_for(users.storeman)

        resp = client.get("/api/parts/alerts/low-stock", headers=storeman)
        assert sorted(part["part_number"] for part in _json(resp)["parts"]) == ["OF-003-MANN", "SP-001-NGK"]

        resp = client.patch("/api/parts/SP-001-NGK/stock", json={"stock_qty": 12}, headers=storeman)
        assert resp.status_code == 200
        assert _json(resp)["part"]["stock_qty"] == 12

        resp = client.get("/api/parts/alerts/low-stock", headers=storeman)
        assert [part["part_number"] for part in _json(resp)["parts"]] == ["OF-003-MANN"]

    @pytest.mark.parametrize("body", [{}, {"stock_qty": -1}, {"stock_qty": "lots"}])
    def test_bad_stock_is_400(self, client, users, headers_for, body):
        resp = client.patch("/api/parts/SP-001-NGK/stock", json=body, headers=headers_for(users.storeman))
        assert resp.status_code == 400

    def test_categories(self, client, users, headers_for):
        resp = client.get("/api/parts/meta/categories", headers=headers_for(users.salesman))
        assert resp.status_code == 200
        assert _json(resp)["categories"] == [
            {"category": "Filters", "count": 1},
            {"category": "Ignition System", "count": 1},
        ]


# =============================================================================
# RETAILERS
# =============================================================================


class TestRetailerManagement:

    def test_manager_updates_own_store_retailer(self, client, users, headers_for):
        resp = client.put(
            "/api/retailers/1",
            json={"contact_person": "Mike", "credit_limit": 1000},
            headers=headers_for(users.manager),
        )
        assert resp.status_code == 200
        retailer = _json(resp)["retailer"]
        assert retailer["contact_person"] == "Mike"
        assert retailer["credit_limit"] == 1000

    def test_manager_cannot_update_sibling_store_retailer(self, client, users, headers_for):
        resp = client.put("/api/retailers/2", json={"contact_person": "X"}, headers=headers_for(users.manager))
        assert resp.status_code == 403
        assert _json(resp)["code"] == "SCOPE_DENIED"

    def test_moving_home_store_needs_both_stores(self, client, users, headers_for):
        resp = client.put("/api/retailers/1", json={"store_code": "NYC002"}, headers=headers_for(users.manager))
        assert resp.status_code == 403

        resp = client.put("/api/retailers/1", json={"store_code": "NYC002"}, headers=headers_for(users.admin))
        assert resp.status_code == 200
        assert _json(resp)["retailer"]["store_code"] == "NYC002"

    def test_storeman_cannot_update(self, client, users, headers_for):
        resp = client.put("/api/retailers/1", json={"name": "X"}, headers=headers_for(users.storeman))
        assert resp.status_code == 403
        assert _json(resp)["code"] == "PERMISSION_DENIED"

    def test_confirm(self, client, users, headers_for):
        resp = client.patch("/api/retailers/1/confirm", headers=headers_for(users.manager))
        assert resp.status_code == 200
        assert _json(resp)["retailer"]["is_confirmed"] is True

    def test_deactivated_retailer_takes_no_orders(self, client, users, headers_for):
        resp = client.patch("/api/retailers/1/status", json={"is_active": False}, headers=headers_for(users.manager))
        assert resp.status_code == 200
        assert db.session.get(Retailer, 1).is_active is False

        resp = client.post(
            "/api/orders",
            json={"retailer_id": 1, "items": [{"part_number": "SP-001-NGK", "quantity": 1}]},
            headers=headers_for(users.salesman),
        )
        assert resp.status_code == 400

    def test_status_requires_flag(self, client, users, headers_for):
        resp = client.patch("/api/retailers/1/status", json={}, headers=headers_for(users.manager))
        assert resp.status_code == 400

    def test_stats_are_scoped(self, client, users, headers_for):
        client.patch("/api/retailers/1/confirm", headers=headers_for(users.manager))

        stats = _json(client.get("/api/retailers/stats/summary", headers=headers_for(users.admin)))
        assert stats["total_retailers"] == 2
        assert stats["active_retailers"] == 2
        assert stats["confirmed_retailers"] == 1
        assert stats["unique_stores"] == 2

        stats = _json(client.get("/api/retailers/stats/summary", headers=headers_for(users.super_admin)))
        assert stats["total_retailers"] == 3


# =============================================================================
# COMPANIES AND STORES
# =============================================================================


class TestOrganisationChanges:

    def test_super_admin_renames_company(self, client, users, headers_for):
        resp = client.put("/api/companies/1", json={"name": "AutoParts Plus Ltd"}, headers=headers_for(users.super_admin))
        assert resp.status_code == 200
        assert _json(resp)["company"]["name"] == "AutoParts Plus Ltd"

        resp = client.put("/api/companies/1", json={"name": ""}, headers=headers_for(users.super_admin))
        assert resp.status_code == 400

    def test_admin_cannot_update_company(self, client, users, headers_for):
        resp = client.put("/api/companies/1", json={"name": "Mine"}, headers=headers_for(users.admin))
        assert resp.status_code == 403

    def test_company_delete_only_when_empty(self, client, users, headers_for):
        root = headers_for(users.super_admin)
        resp = client.delete("/api/companies/2", headers=root)
        assert resp.status_code == 409

        client.post("/api/companies", json={"id": "3", "name": "Empty Co"}, headers=root)
        assert client.delete("/api/companies/3", headers=root).status_code == 200
        assert client.get("/api/companies/3", headers=root).status_code == 403

    def test_admin_updates_own_store(self, client, users, headers_for):
        admin = headers_for(users.admin)
        resp = client.put("/api/stores/NYC002", json={"name": "Brooklyn"}, headers=admin)
        assert resp.status_code == 200
        assert _json(resp)["store"]["name"] == "Brooklyn"

        resp = client.put("/api/stores/LA001", json={"name": "Mine"}, headers=admin)
        assert resp.status_code == 403
        assert _json(resp)["code"] == "SCOPE_DENIED"

    def test_only_super_admin_moves_store(self, client, users, headers_for):
        resp = client.put("/api/stores/NYC002", json={"company_id": "2"}, headers=headers_for(users.admin))
        assert resp.status_code == 403
        assert _json(resp)["code"] == "PERMISSION_DENIED"

        resp = client.put("/api/stores/NYC002", json={"company_id": "2"}, headers=headers_for(users.super_admin))
        assert resp.status_code == 200
        assert _json(resp)["store"]["company_id"] == "2"

    def test_store_delete_refused_while_in_use(self, client, users, headers_for):
        admin = headers_for(users.admin)
        # Home store of retailer 2
        assert client.delete("/api/stores/NYC002", headers=admin).status_code == 409
        # Staff assigned
        assert client.delete("/api/stores/NYC001", headers=admin).status_code == 409

        client.post("/api/stores", json={"code": "NYC009", "name": "Pop-up"}, headers=admin)
        assert client.delete("/api/stores/NYC009", headers=admin).status_code == 200
        assert db.session.get(Store, "NYC009") is None
