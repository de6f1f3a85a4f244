"""End-to-end tests for the HTTP API."""

import logging

import pytest

from freshstock.core.email import EmailService

NEW_PRODUCT = {
    "sku": "fru-ban",
    "name": "Bananas",
    "category": "fruits",
    "unit": "kg",
    "current_stock": 12,
    "min_stock_level": 10,
    "max_stock_level": 60,
    "cost_price": 0.8,
    "selling_price": 1.2,
    "reorder_quantity": 30,
    "max_order_quantity": 5,
    "supplier": {"name": "Farm Fresh Co", "email": "orders@farmfresh.example"},
}


@pytest.fixture
def owner_headers(owner, auth_headers):
    return auth_headers(owner)


class TestAuth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_login_and_me(self, client, owner):
        res = client.post("/api/auth/login", json={"username": "owner", "password": "secret123"})
        assert res.status_code == 200
        token = res.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["username"] == "owner"
        assert me.json()["business_id"] == owner.business_id

    def test_bad_password(self, client, owner):
        res = client.post("/api/auth/login", json={"username": "owner", "password": "nope"})
        assert res.status_code == 401

    def test_token_required(self, client):
        assert client.get("/api/inventory").status_code == 401


class TestProducts:
    def test_create_product(self, client, owner_headers):
        res = client.post("/api/inventory", json=NEW_PRODUCT, headers=owner_headers)

        assert res.status_code == 201
        body = res.json()
        assert body["sku"] == "FRU-BAN"
        assert body["max_order_quantity"] == 60
        assert body["stock_status"] == "in_stock"
        assert body["profit_margin"] == 50.0
        assert body["supplier"]["email"] == "orders@farmfresh.example"

    def test_duplicate_sku(self, client, owner_headers):
        client.post("/api/inventory", json=NEW_PRODUCT, headers=owner_headers)
        res = client.post("/api/inventory", json=NEW_PRODUCT, headers=owner_headers)
        assert res.status_code == 400

    def test_blank_barcodes_do_not_collide(self, client, owner_headers):
        first = client.post(
            "/api/inventory", json={**NEW_PRODUCT, "sku": "fru-ban-1", "barcode": ""}, headers=owner_headers
        )
        second = client.post(
            "/api/inventory", json={**NEW_PRODUCT, "sku": "fru-ban-2", "barcode": "   "}, headers=owner_headers
        )

        assert first.status_code == 201
        assert second.status_code == 201
        assert first.json()["barcode"] is None
        assert second.json()["barcode"] is None

    def test_duplicate_barcode(self, client, owner_headers):
        client.post(
            "/api/inventory", json={**NEW_PRODUCT, "sku": "fru-ban-1", "barcode": "4011"}, headers=owner_headers
        )
        res = client.post(
            "/api/inventory", json={**NEW_PRODUCT, "sku": "fru-ban-2", "barcode": " 4011 "}, headers=owner_headers
        )

        assert res.status_code == 400
        assert "barcode" in res.json()["detail"]

    def test_patch_keeps_order_cap_tied_to_max_stock(self, client, shop, owner_headers, make_product):
        p = make_product(shop, max_stock_level=50)

        res = client.patch(
            f"/api/inventory/{p.id}",
            json={"max_stock_level": 90, "max_order_quantity": 3},
            headers=owner_headers,
        )

        assert res.status_code == 200
        assert res.json()["max_stock_level"] == 90
        assert res.json()["max_order_quantity"] == 90

    def test_patch_barcode_taken_by_another_product(self, client, shop, owner_headers, make_product):
        make_product(shop, barcode="5000")
        p = make_product(shop)

        res = client.patch(f"/api/inventory/{p.id}", json={"barcode": "5000"}, headers=owner_headers)

        assert res.status_code == 400

    def test_min_above_max_is_saved_with_a_warning(self, client, shop, owner_headers, make_product, caplog):
        p = make_product(shop, min_stock_level=10, max_stock_level=50)

        with caplog.at_level(logging.WARNING, logger="freshstock.api.inventory_routes"):
            res = client.patch(f"/api/inventory/{p.id}", json={"min_stock_level": 80}, headers=owner_headers)

        assert res.status_code == 200
        assert res.json()["min_stock_level"] == 80
        assert "above max stock" in caplog.text

    def test_viewer_cannot_write(self, client, viewer, auth_headers):
        res = client.post("/api/inventory", json=NEW_PRODUCT, headers=auth_headers(viewer))
        assert res.status_code == 403

    def test_viewer_can_read(self, client, shop, viewer, auth_headers, make_product):
        make_product(shop, current_stock=0)
        res = client.get("/api/inventory", headers=auth_headers(viewer))
        assert res.status_code == 200
        assert res.json()[0]["stock_status"] == "out_of_stock"

    def test_other_business_is_invisible(self, client, owner_headers, make_business, make_product):
        p = make_product(make_business("Other Shop"))
        assert client.get(f"/api/inventory/{p.id}", headers=owner_headers).status_code == 404

    def test_low_stock_listing(self, client, shop, owner_headers, make_product):
        p = make_product(shop, current_stock=2, reorder_quantity=20, cost_price=2.0)
        make_product(shop, current_stock=30)

        res = client.get("/api/inventory/low-stock", headers=owner_headers)

        assert [c["product"]["id"] for c in res.json()] == [p.id]
        assert res.json()[0]["estimated_cost"] == 40.0

    def test_soft_delete(self, client, shop, owner_headers, make_product):
        p = make_product(shop)
        assert client.delete(f"/api/inventory/{p.id}", headers=owner_headers).status_code == 200
        assert client.get(f"/api/inventory/{p.id}", headers=owner_headers).status_code == 404


class TestRestockAndReorder:
    def test_restock_over_capacity(self, client, shop, owner_headers, make_product):
        p = make_product(shop, current_stock=45, max_stock_level=50)

        res = client.post(f"/api/inventory/{p.id}/restock", json={"quantity": 10}, headers=owner_headers)

        assert res.status_code == 400
        assert res.json()["max_allowed_quantity"] == 5
        assert res.json()["requested_quantity"] == 10

    def test_restock(self, client, shop, owner_headers, make_product):
        p = make_product(shop, current_stock=5)

        res = client.post(f"/api/inventory/{p.id}/restock", json={"quantity": 20}, headers=owner_headers)

        assert res.status_code == 200
        assert res.json()["product"]["current_stock"] == 25

        movements = client.get(f"/api/inventory/movements?product_id={p.id}", headers=owner_headers).json()
        assert movements[0]["action"] == "restock"
        assert movements[0]["delta"] == 20

    def test_reorder(self, client, shop, owner_headers, make_product):
        p = make_product(shop, current_stock=5, reorder_quantity=20)

        res = client.post(f"/api/inventory/{p.id}/reorder", headers=owner_headers)

        assert res.status_code == 200
        body = res.json()
        assert body["product"]["current_stock"] == 25
        assert body["order"]["status"] == "confirmed"
        assert body["order"]["order_type"] == "manual"

    def test_reorder_multiple(self, client, shop, owner_headers, make_product):
        ok = make_product(shop, current_stock=5)
        full = make_product(shop, current_stock=50, max_stock_level=50)

        res = client.post(
            "/api/inventory/reorder-multiple",
            json={"product_ids": [ok.id, full.id]},
            headers=owner_headers,
        )

        body = res.json()
        assert res.status_code == 200
        assert [r["product_id"] for r in body["results"]] == [ok.id]
        assert [e["product_id"] for e in body["errors"]] == [full.id]

    def test_trigger_auto_reorder(self, client, shop, owner_headers, make_product):
        make_product(shop, current_stock=1)

        res = client.post("/api/inventory/trigger-auto-reorder", headers=owner_headers)

        assert res.json()["summary"]["orders_created"] == 1
        orders = client.get("/api/orders", headers=owner_headers).json()
        assert orders[0]["order_type"] == "automatic"
        assert orders[0]["payment_status"] == "pending"


class TestOrders:
    def test_order_lifecycle(self, client, shop, owner_headers, make_product):
        p = make_product(shop, current_stock=5, cost_price=2.0)

        created = client.post(
            "/api/orders",
            json={"items": [{"product_id": p.id, "quantity": 10}]},
            headers=owner_headers,
        )
        assert created.status_code == 201
        order_id = created.json()["id"]
        assert created.json()["total_amount"] == 20.0

        paid = client.post(f"/api/orders/{order_id}/payment", json={"succeeded": True}, headers=owner_headers)
        assert paid.json()["status"] == "confirmed"

        delivered = client.put(
            f"/api/orders/{order_id}/status", json={"status": "delivered"}, headers=owner_headers
        )
        assert delivered.json()["status"] == "delivered"
        assert client.get(f"/api/inventory/{p.id}", headers=owner_headers).json()["current_stock"] == 15

        locked = client.delete(f"/api/orders/{order_id}", headers=owner_headers)
        assert locked.status_code == 400

    def test_order_size_limit(self, client, shop, owner_headers, make_product):
        p = make_product(shop, max_stock_level=50)

        res = client.post(
            "/api/orders",
            json={"items": [{"product_id": p.id, "quantity": 80}]},
            headers=owner_headers,
        )

        assert res.status_code == 400
        assert res.json()["error"] == "ORDER_SIZE_LIMIT_EXCEEDED"

    def test_unknown_status_rejected(self, client, shop, owner_headers, make_product):
        p = make_product(shop)
        order_id = client.post(
            "/api/orders",
            json={"items": [{"product_id": p.id, "quantity": 1}]},
            headers=owner_headers,
        ).json()["id"]

        res = client.put(f"/api/orders/{order_id}/status", json={"status": "lost"}, headers=owner_headers)
        assert res.status_code == 422


class TestMaintenanceAndNotifications:
    def test_low_stock_check_notifies(self, client, shop, owner_headers, make_product):
        make_product(shop, current_stock=0)

        res = client.post("/api/maintenance/low-stock-check", headers=owner_headers)
        assert res.json()["summary"]["notifications"] == 1

        notes = client.get("/api/notifications?unread_only=true", headers=owner_headers).json()
        assert notes[0]["type"] == "out_of_stock"

        read = client.patch(f"/api/notifications/{notes[0]['id']}/read", headers=owner_headers)
        assert read.json()["is_read"] is True
        assert client.get("/api/notifications?unread_only=true", headers=owner_headers).json() == []

    def test_auto_renew(self, client, shop, owner_headers, make_product):
        make_product(shop, current_stock=1)
        make_product(shop, current_stock=2)

        res = client.post("/api/maintenance/auto-renew", headers=owner_headers)

        assert res.json()["summary"]["orders_created"] == 1
        orders = client.get("/api/orders", headers=owner_headers).json()
        assert len(orders[0]["items"]) == 2

    def test_low_stock_emails_follow_app_settings(
        self, client, settings, shop, owner_headers, make_product, monkeypatch
    ):
        sent = []

        def fake_send(self, to_emails, subject, html_content):
            sent.append((self.settings.send_emails, subject))
            return True

        monkeypatch.setattr(EmailService, "send_email", fake_send)
        settings.send_emails = True
        make_product(shop, current_stock=3)

        client.post("/api/maintenance/low-stock-check", headers=owner_headers)

        assert sent == [(True, "Low Stock Alert")]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestOnboarding:
    def register_and_login(self, client, username="grace", email="Grace@Example.com"):
        res = client.post(
            "/api/auth/register",
            json={"username": username, "name": "Grace Hopper", "email": email, "password": "secret99"},
        )
        assert res.status_code == 201
        login = client.post("/api/auth/login", json={"username": username, "password": "secret99"})
        return res.json(), bearer(login.json()["access_token"])

    def test_register_without_business(self, client):
        user, headers = self.register_and_login(client)

        assert user["email"] == "grace@example.com"
        assert user["business_id"] is None
        # nothing to look at until a business is created or selected
        assert client.get("/api/inventory", headers=headers).status_code == 400

    def test_register_duplicate_email(self, client, owner):
        res = client.post(
            "/api/auth/register",
            json={"username": "someone", "name": "Some One", "email": "OWNER@example.com", "password": "secret99"},
        )
        assert res.status_code == 400
        assert res.json()["detail"] == "User already exists"

    def test_register_short_password(self, client):
        res = client.post(
            "/api/auth/register",
            json={"username": "grace", "name": "Grace", "email": "grace@example.com", "password": "123"},
        )
        assert res.status_code == 422

    def test_first_business_becomes_current(self, client):
        _, headers = self.register_and_login(client)

        res = client.post(
            "/api/auth/business",
            json={"name": "Green Market", "description": "Organic produce", "business_type": "grocery"},
            headers=headers,
        )

        assert res.status_code == 201
        body = res.json()
        assert body["message"] == "Business created successfully"
        assert body["user"]["business_id"] == body["business"]["id"]
        assert body["user"]["role"] == "owner"
        assert client.post("/api/inventory", json=NEW_PRODUCT, headers=headers).status_code == 201

    def test_unknown_business_type(self, client, owner_headers):
        res = client.post(
            "/api/auth/business", json={"name": "Spaceport", "business_type": "rocket"}, headers=owner_headers
        )
        assert res.status_code == 422

    def test_list_and_switch(self, client, shop, viewer, auth_headers, make_product):
        make_product(shop)
        headers = auth_headers(viewer)

        created = client.post("/api/auth/business", json={"name": "Night Market"}, headers=headers).json()
        new_id = created["business"]["id"]
        # already had a current business, so it stays selected
        assert created["user"]["business_id"] == shop.id

        listed = client.get("/api/auth/businesses", headers=headers).json()["businesses"]
        roles = {b["business"]["id"]: (b["role"], b["is_current"]) for b in listed}
        assert roles == {shop.id: ("viewer", True), new_id: ("owner", False)}

        switched = client.put(f"/api/auth/business/{new_id}/switch", headers=headers)
        assert switched.status_code == 200
        assert switched.json()["message"] == "Business switched successfully"
        assert switched.json()["user"]["role"] == "owner"
        assert client.get("/api/inventory", headers=headers).json() == []

        back = client.put(f"/api/auth/business/{shop.id}/switch", headers=headers)
        assert back.json()["user"]["role"] == "viewer"
        assert len(client.get("/api/inventory", headers=headers).json()) == 1

    def test_switch_to_foreign_business(self, client, owner_headers, make_business):
        other = make_business("Other Shop")

        res = client.put(f"/api/auth/business/{other.id}/switch", headers=owner_headers)

        assert res.status_code == 403
        assert res.json()["detail"] == "Access denied to this business"


class TestEventStream:
    def test_events_reach_the_socket(self, client, events):
        with client.websocket_connect("/ws/events") as ws:
            events.emit("stockUpdated", {"product_id": 7, "current_stock": 12})
            assert ws.receive_json() == {"event": "stockUpdated", "data": {"product_id": 7, "current_stock": 12}}

    def test_disconnect_unsubscribes(self, client, events):
        with client.websocket_connect("/ws/events"):
            assert len(events._listeners) == 1

        assert events._listeners == []
