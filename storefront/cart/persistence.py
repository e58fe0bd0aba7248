"""
Serialization of the cart into client storage and back.

The stored payload is ``{"state": {"cart": [...]}, "version": 0}`` under the
``cart-storage`` key. Reads never fail: absent or malformed data gives an
empty cart. Writes are best effort: a storage failure is logged and the
in-memory cart stays as it is.
"""
from __future__ import annotations

import json
import logging
from decimal import InvalidOperation
from typing import Optional

from storefront.cart.models import Cart, CartLineItem
from storefront.cart.storage import ClientStorage
from storefront.constants import CART_STORAGE_KEY, CART_STORAGE_VERSION
from storefront.exceptions import StorageError

log = logging.getLogger(__name__)


def serialize_cart(cart: Cart) -> str:
    return json.dumps(
        {"state": {"cart": [it.to_dict() for it in cart]}, "version": CART_STORAGE_VERSION},
        ensure_ascii=False,
    )


def deserialize_cart(raw: str) -> Cart:
    """Parse a stored payload. Raises ValueError on anything malformed."""
    try:
        data = json.loads(raw)
        rows = data["state"]["cart"]
        if not isinstance(rows, list):
            raise ValueError("cart is not a list")
        items = tuple(CartLineItem.from_dict(r) for r in rows)
    except (KeyError, TypeError, InvalidOperation) as e:
        raise ValueError(f"malformed cart payload: {e!r}") from e

    ids = [it.id for it in items]
    if len(set(ids)) != len(ids):
        raise ValueError("duplicate line item ids")
    return Cart(items=items)


def load_cart(storage: ClientStorage, key: str = CART_STORAGE_KEY) -> Cart:
    try:
        raw = storage.get_item(key)
    except StorageError as e:
        log.warning("cart storage read failed, starting empty: %s", e)
        return Cart()
    if raw is None:
        return Cart()
    try:
        return deserialize_cart(raw)
    except ValueError as e:
        log.warning("discarding unreadable cart under %r: %s", key, e)
        return Cart()


class CartPersister:
    """Store listener that writes every new cart state to client storage."""

    def __init__(self, storage: ClientStorage, key: str = CART_STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key
        self.last_error: Optional[StorageError] = None

    def __call__(self, cart: Cart) -> None:
        try:
            self.storage.set_item(self.key, serialize_cart(cart))
            self.last_error = None
        except StorageError as e:
            self.last_error = e
            log.exception("cart write to %r failed, keeping in-memory state", self.key)
