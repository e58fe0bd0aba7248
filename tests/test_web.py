"""
Component tests for the web front.

TestClient keeps the cart_session cookie between requests, so one client is
one browser session.
"""
import json
from dataclasses import replace
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe
from fastapi.testclient import TestClient

from conftest import stripe_signature
from storefront.db.sqlite import create_order
from storefront.web.main import create_app

USER = {"X-User-Id": "user_1"}


def _api_cart(client):
    return client.get("/api/cart").json()


def _add(client, item_id):
    return client.post("/cart/add", data={"item_id": item_id}, follow_redirects=False)


class TestPages:
    def test_home_and_menu(self, client, margherita):
        assert client.get("/").status_code == 200
        resp = client.get("/menu")
        assert resp.status_code == 200
        assert "Margherita" in resp.text
        assert "$12.50" in resp.text

    def test_session_cookie_set_once(self, client):
        first = client.get("/")
        assert "cart_session" in first.cookies
        second = client.get("/")
        assert "cart_session" not in second.cookies

    def test_unknown_page(self, client):
        resp = client.get("/nowhere")
        assert resp.status_code == 404
        assert "Page not found" in resp.text

    def test_no_static_mount(self, client):
        assert "static" not in {getattr(r, "name", None) for r in client.app.routes}

    def test_visitors_without_cookie_do_not_open_stores(self, client):
        for _ in range(50):
            client.cookies.clear()
            assert client.get("/").status_code == 200
        client.cookies.clear()
        client.get("/nowhere")
        assert len(client.app.state.carts) == 0

    def test_navbar_count_read_from_storage(self, settings, client, margherita):
        _add(client, margherita["id"])
        _add(client, margherita["id"])
        sid = client.cookies.get("cart_session")

        restarted = TestClient(create_app(settings))
        page = restarted.get("/", headers={"Cookie": f"cart_session={sid}"})
        assert 'id="cart-count">2<' in page.text
        assert len(restarted.app.state.carts) == 0


class TestCartFlow:
    def test_add_merge_and_totals(self, client, margherita, lemonade):
        resp = _add(client, margherita["id"])
        assert resp.status_code == 303
        assert resp.headers["location"] == "/menu"
        _add(client, margherita["id"])
        _add(client, lemonade["id"])

        data = _api_cart(client)
        assert [(it["id"], it["quantity"]) for it in data["cart"]] == [(margherita["id"], 2), (lemonade["id"], 1)]
        assert Decimal(data["subtotal"]) == Decimal("33.00")
        assert Decimal(data["tax"]) == Decimal("2.64")
        assert Decimal(data["total"]) == Decimal("35.64")

        page = client.get("/cart")
        assert "$33.00" in page.text
        assert "$35.64" in page.text
        assert 'id="cart-count">3<' in page.text

    def test_increment_decrement_remove_clear(self, client, margherita, lemonade):
        _add(client, margherita["id"])
        _add(client, lemonade["id"])

        client.post("/cart/increment", data={"item_id": margherita["id"]})
        assert _api_cart(client)["cart"][0]["quantity"] == 2

        client.post("/cart/decrement", data={"item_id": margherita["id"]})
        client.post("/cart/decrement", data={"item_id": margherita["id"]})
        assert _api_cart(client)["cart"][0]["quantity"] == 1

        client.post("/cart/remove", data={"item_id": lemonade["id"]})
        client.post("/cart/increment", data={"item_id": lemonade["id"]})
        assert [it["id"] for it in _api_cart(client)["cart"]] == [margherita["id"]]

        client.post("/cart/clear")
        client.post("/cart/clear")
        assert _api_cart(client)["cart"] == []

    def test_add_unknown_item(self, client):
        resp = _add(client, "nope")
        assert resp.status_code == 404

    def test_cart_is_per_session(self, settings, client, margherita):
        _add(client, margherita["id"])
        other = TestClient(client.app)
        assert _api_cart(other)["cart"] == []
        assert len(_api_cart(client)["cart"]) == 1

    def test_cart_survives_restart(self, settings, client, margherita):
        _add(client, margherita["id"])
        _add(client, margherita["id"])
        sid = client.cookies.get("cart_session")

        restarted = TestClient(create_app(settings))
        resp = restarted.get("/api/cart", headers={"Cookie": f"cart_session={sid}"})
        assert resp.json()["cart"][0]["quantity"] == 2

    def test_cart_keeps_snapshot_after_menu_change(self, settings, client, margherita):
        _add(client, margherita["id"])
        admin = TestClient(client.app)
        admin.post(
            f"/admin/menu/{margherita['id']}/edit",
            data={"name": "Margherita XL", "description": "Bigger", "category": "Pizza", "price": "20"},
            headers=USER,
        )
        line = _api_cart(client)["cart"][0]
        assert line["name"] == "Margherita"
        assert Decimal(line["price"]) == Decimal("12.5")

    def test_success_page_clears_cart(self, client, margherita):
        _add(client, margherita["id"])
        resp = client.get("/success", params={"session_id": "cs_test_1"})
        assert resp.status_code == 200
        assert "Payment Successful!" in resp.text
        assert _api_cart(client)["cart"] == []


@pytest.fixture
def stripe_create(monkeypatch):
    mock = MagicMock(return_value=SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1"))
    monkeypatch.setattr(stripe.checkout.Session, "create", mock)
    return mock


class TestCheckout:
    def test_cart_checkout_redirects_to_provider(self, client, margherita, stripe_create):
        _add(client, margherita["id"])
        resp = client.post("/cart/checkout", headers=USER, follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "https://checkout.stripe.com/c/pay/cs_test_1"
        # cart is only cleared by the success page
        assert len(_api_cart(client)["cart"]) == 1

    def test_cart_checkout_requires_sign_in(self, client, margherita, stripe_create):
        _add(client, margherita["id"])
        resp = client.post("/cart/checkout", follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"].startswith("/cart?msg=Unauthorized")
        stripe_create.assert_not_called()

    def test_api_checkout(self, client, stripe_create):
        items = [{"id": "a", "name": "A", "price": 10, "quantity": 2}]
        resp = client.post("/api/checkout", json={"cartItems": items}, headers=USER)
        assert resp.status_code == 200
        assert resp.json() == {"url": "https://checkout.stripe.com/c/pay/cs_test_1"}

    def test_api_checkout_errors(self, client, stripe_create):
        assert client.post("/api/checkout", json={"cartItems": [{"id": "a"}]}).status_code == 401
        resp = client.post("/api/checkout", json={"cartItems": []}, headers=USER)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Cart is empty"}


class TestWebhookRoutes:
    def test_status(self, client):
        resp = client.get("/api/webhook")
        assert resp.json()["environment"] == {"hasStripeSecret": True, "hasWebhookSecret": True}

    def test_post_creates_order(self, settings, client, margherita):
        payload = json.dumps(
            {
                "type": "checkout.session.completed",
                "data": {
                    "object": {
                        "amount_total": 1350,
                        "payment_intent": "pi_9",
                        "metadata": {
                            "userId": "user_1",
                            "cartItems": json.dumps([{"id": margherita["id"], "quantity": 1}]),
                        },
                    }
                },
            }
        ).encode()
        resp = client.post(
            "/api/webhook", content=payload, headers={"stripe-signature": stripe_signature(payload)}
        )
        assert resp.status_code == 200
        assert resp.text == "Webhook received"

        page = client.get("/orders", headers=USER)
        assert "Order #" in page.text
        assert "Margherita" in page.text

    def test_post_without_signature(self, client):
        resp = client.post("/api/webhook", content=b"{}")
        assert resp.status_code == 400
        assert resp.text == "Missing Stripe signature"


class TestOrders:
    def test_anonymous_sees_sign_in_prompt(self, client):
        resp = client.get("/orders")
        assert resp.status_code == 200
        assert "Please sign in to view your orders" in resp.text

    def test_no_orders_yet(self, client):
        assert "No orders yet" in client.get("/orders", headers=USER).text

    def test_only_own_orders_listed(self, settings, client, margherita):
        create_order(settings.db_path, "user_1", 13.5, "pi_1", [(margherita["id"], 1)])
        create_order(settings.db_path, "user_2", 27.0, "pi_2", [(margherita["id"], 2)])
        page = client.get("/orders", headers=USER).text
        assert "$13.50" in page
        assert "$27.00" not in page

    def test_receipt_pdf(self, settings, client, margherita):
        order_id, _ = create_order(settings.db_path, "user_1", 13.5, "pi_1", [(margherita["id"], 1)])
        resp = client.get(f"/orders/{order_id}/receipt", headers=USER)
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.content.startswith(b"%PDF")

        assert client.get(f"/orders/{order_id}/receipt", headers={"X-User-Id": "user_2"}).status_code == 404
        assert client.get(f"/orders/{order_id}/receipt").status_code == 404


class TestAdmin:
    def test_requires_principal(self, client):
        assert client.get("/admin/menu").status_code == 403
        resp = client.post("/admin/menu/create", data={"name": "X"})
        assert resp.status_code == 403

    def test_admin_list_restricted_to_configured_ids(self, settings, margherita):
        client = TestClient(create_app(replace(settings, admin_user_ids=("boss",))))
        assert client.get("/admin/menu", headers=USER).status_code == 403
        assert client.get("/admin/menu", headers={"X-User-Id": "boss"}).status_code == 200

    def test_create_edit_delete(self, client):
        resp = client.post(
            "/admin/menu/create",
            data={"name": "Tiramisu", "description": "Coffee dessert", "category": "Desserts", "price": "7.5"},
            headers=USER,
            follow_redirects=False,
        )
        assert resp.status_code == 303
        assert "created" in resp.headers["location"]

        items = client.get("/api/menu-items").json()
        assert [i["name"] for i in items] == ["Tiramisu"]
        item_id = items[0]["id"]

        form = client.get(f"/admin/menu/create?edit={item_id}", headers=USER)
        assert "Edit Menu Item" in form.text

        client.post(
            f"/admin/menu/{item_id}/edit",
            data={"name": "Tiramisu", "description": "Coffee dessert", "category": "Desserts", "price": "8"},
            headers=USER,
        )
        assert client.get("/api/menu-items").json()[0]["price"] == 8.0

        resp = client.post(f"/admin/menu/{item_id}/delete", headers=USER, follow_redirects=False)
        assert resp.status_code == 303
        assert client.get("/api/menu-items").json() == []

    def test_create_shows_field_errors(self, client):
        resp = client.post(
            "/admin/menu/create",
            data={"name": "Soup", "description": "Hot", "category": "", "price": "0"},
            headers=USER,
        )
        assert resp.status_code == 400
        assert "Select an appropriate category" in resp.text
        assert "Price must have a minimum value of 1" in resp.text

    def test_create_rejects_infinite_price(self, client):
        resp = client.post(
            "/admin/menu/create",
            data={"name": "Soup", "description": "Hot", "category": "Soups", "price": "inf"},
            headers=USER,
        )
        assert resp.status_code == 400
        assert "Price must be a valid number" in resp.text
        assert client.get("/api/menu-items").json() == []

    def test_api_delete(self, client, margherita):
        assert client.delete("/api/menu-items", params={"id": margherita["id"]}).status_code == 401
        assert client.delete("/api/menu-items", headers=USER).status_code == 400
        resp = client.delete("/api/menu-items", params={"id": margherita["id"]}, headers=USER)
        assert resp.json() == {"message": "Menu item deleted successfully!"}
