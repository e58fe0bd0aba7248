"""
Pure cart state transitions.

Every function takes a Cart and returns a new Cart; none of them touch
storage. Unknown ids leave the cart unchanged. No transition produces a
line item with quantity below 1.
"""
from __future__ import annotations

from storefront.cart.models import Cart, CartLineItem, CatalogItemSnapshot


def add_to_cart(cart: Cart, item: CatalogItemSnapshot) -> Cart:
    existing = cart.get(item.id)
    if existing is None:
        return Cart(items=cart.items + (CartLineItem.from_snapshot(item),))
    # merge: copied fields stay as first added, only quantity moves
    return _replace(cart, existing.with_quantity(existing.quantity + 1))


def remove_from_cart(cart: Cart, item_id: str) -> Cart:
    if item_id not in cart:
        return cart
    return Cart(items=tuple(it for it in cart.items if it.id != item_id))


def increment_quantity(cart: Cart, item_id: str) -> Cart:
    existing = cart.get(item_id)
    if existing is None:
        return cart
    return _replace(cart, existing.with_quantity(existing.quantity + 1))


def decrement_quantity(cart: Cart, item_id: str) -> Cart:
    existing = cart.get(item_id)
    if existing is None:
        return cart
    return _replace(cart, existing.with_quantity(max(1, existing.quantity - 1)))


def clear_cart(cart: Cart) -> Cart:
    return Cart()


def _replace(cart: Cart, line: CartLineItem) -> Cart:
    return Cart(items=tuple(line if it.id == line.id else it for it in cart.items))
