"""
Unit Tests: checkout session creation.

stripe.checkout.Session.create is patched, nothing leaves the process.
"""
import json
from dataclasses import replace
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe

from storefront.exceptions import CheckoutError
from storefront.services.checkout import CheckoutService, to_cents

CART = [
    {"id": "a", "name": "Margherita", "price": 12.5, "quantity": 2, "image": None, "description": "Basil"},
    {"id": "b", "name": "Lemonade", "price": "8.00", "quantity": 1, "image": "https://cdn.example.com/l.jpg"},
]


@pytest.fixture
def create_session(monkeypatch):
    mock = MagicMock(return_value=SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1"))
    monkeypatch.setattr(stripe.checkout.Session, "create", mock)
    return mock


def test_to_cents_rounds_half_up():
    assert to_cents(Decimal("12.50")) == 1250
    assert to_cents(Decimal("0.005")) == 1
    assert to_cents(Decimal("19.999")) == 2000


def test_creates_session_and_returns_url(settings, create_session):
    url = CheckoutService(settings).create_session("user_1", CART)

    assert url == "https://checkout.stripe.com/c/pay/cs_test_1"
    kwargs = create_session.call_args.kwargs
    assert kwargs["api_key"] == "sk_test_123"
    assert kwargs["mode"] == "payment"
    assert kwargs["payment_method_types"] == ["card"]
    assert kwargs["success_url"] == "http://testserver/success?session_id={CHECKOUT_SESSION_ID}"
    assert kwargs["cancel_url"] == "http://testserver/cart"

    first, second = kwargs["line_items"]
    assert first["price_data"]["unit_amount"] == 1250
    assert first["price_data"]["currency"] == "usd"
    assert first["price_data"]["product_data"]["images"] == []
    assert first["quantity"] == 2
    assert second["price_data"]["product_data"]["images"] == ["https://cdn.example.com/l.jpg"]
    assert second["price_data"]["product_data"]["description"] == ""

    assert kwargs["metadata"]["userId"] == "user_1"
    assert json.loads(kwargs["metadata"]["cartItems"]) == [
        {"id": "a", "name": "Margherita", "price": 12.5, "quantity": 2},
        {"id": "b", "name": "Lemonade", "price": 8.0, "quantity": 1},
    ]


@pytest.mark.parametrize(
    "user_id, items, status, message",
    [
        (None, CART, 401, "Unauthorized"),
        ("user_1", [], 400, "Cart is empty"),
        ("user_1", None, 400, "Cart is empty"),
        ("user_1", [{"id": "a", "name": "A", "price": 1, "quantity": 0}], 400, "Invalid cart items"),
        ("user_1", [{"id": "a", "name": "A", "price": -1, "quantity": 1}], 400, "Invalid cart items"),
        ("user_1", [{"id": "a", "name": "A", "price": "Infinity", "quantity": 1}], 400, "Invalid cart items"),
        ("user_1", [{"id": "a", "name": "A", "price": "NaN", "quantity": 1}], 400, "Invalid cart items"),
    ],
)
def test_rejected_requests(settings, create_session, user_id, items, status, message):
    with pytest.raises(CheckoutError) as exc:
        CheckoutService(settings).create_session(user_id, items)
    assert exc.value.status_code == status
    assert exc.value.message == message
    create_session.assert_not_called()


def test_missing_secret_key(settings, create_session):
    service = CheckoutService(replace(settings, stripe_secret_key=""))
    with pytest.raises(CheckoutError) as exc:
        service.create_session("user_1", CART)
    assert exc.value.status_code == 500
    assert exc.value.message == "Payment configuration error"
    create_session.assert_not_called()


def test_provider_rejection(settings, monkeypatch):
    monkeypatch.setattr(
        stripe.checkout.Session, "create", MagicMock(side_effect=stripe.InvalidRequestError("bad", param=None))
    )
    with pytest.raises(CheckoutError) as exc:
        CheckoutService(settings).create_session("user_1", CART)
    assert exc.value.status_code == 500
    assert exc.value.message == "Failed to create checkout session"
