"""
Pytest configuration and fixtures for tests.

Every test gets its own SQLite file under tmp_path; Stripe keys are dummies
and the SDK calls that would leave the process are patched in the tests.
"""
import hashlib
import hmac
import time
from dataclasses import replace
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.cart.models import CatalogItemSnapshot
from storefront.config import load_settings
from storefront.db.sqlite import add_menu_item, init_db
from storefront.web.main import create_app

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def settings(tmp_path):
    s = replace(
        load_settings(),
        db_path=str(tmp_path / "storefront.db"),
        export_dir=str(tmp_path / "exports"),
        currency="usd",
        decimals=2,
        tax_rate=Decimal("0.08"),
        public_url="http://testserver",
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        auth_header="X-User-Id",
        admin_user_ids=(),
        admin_id=42,
    )
    init_db(s.db_path)
    return s


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings))


@pytest.fixture
def margherita(settings):
    return add_menu_item(settings.db_path, "Margherita", "Tomato, mozzarella, basil", "Pizza", 12.5, None)


@pytest.fixture
def lemonade(settings):
    return add_menu_item(
        settings.db_path, "Lemonade", "Fresh lemons", "Beverages", 8.0, "https://cdn.example.com/lemonade.jpg"
    )


def snapshot(item_id: str, price: str = "10.00", name: str | None = None) -> CatalogItemSnapshot:
    return CatalogItemSnapshot(
        id=item_id,
        name=name or f"Item {item_id}",
        description=f"About {item_id}",
        category="Pizza",
        price=Decimal(price),
        image=None,
    )


def stripe_signature(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    t = int(time.time())
    sig = hmac.new(secret.encode(), f"{t}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={t},v1={sig}"
