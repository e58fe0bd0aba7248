from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from storefront.cart import transitions
from storefront.cart.models import Cart, CartTotals, CatalogItemSnapshot
from storefront.cart.persistence import CartPersister, load_cart
from storefront.cart.storage import ClientStorage
from storefront.constants import CART_STORAGE_KEY

log = logging.getLogger(__name__)

Listener = Callable[[Cart], None]


class CartStore:
    """
    Owner of one client's cart.

    Mutations run a pure transition and then notify listeners synchronously,
    so a persistence listener has written the new state before the call
    returns. None of the mutations raise.

    A mutation holds the store lock from reading the current cart until the
    last listener has run, so concurrent requests for one session apply in
    turn and persist in the same order.
    """

    def __init__(self, cart: Optional[Cart] = None) -> None:
        self._cart = cart if cart is not None else Cart()
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    @property
    def cart(self) -> Cart:
        return self._cart

    @property
    def item_count(self) -> int:
        return self._cart.item_count

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _apply(self, transition: Callable[..., Cart], *args: Any) -> None:
        with self._lock:
            cart = transition(self._cart, *args)
            self._cart = cart
            for listener in list(self._listeners):
                listener(cart)

    def add_to_cart(self, item: CatalogItemSnapshot) -> None:
        self._apply(transitions.add_to_cart, item)

    def remove_from_cart(self, item_id: str) -> None:
        self._apply(transitions.remove_from_cart, item_id)

    def increment_quantity(self, item_id: str) -> None:
        self._apply(transitions.increment_quantity, item_id)

    def decrement_quantity(self, item_id: str) -> None:
        self._apply(transitions.decrement_quantity, item_id)

    def clear_cart(self) -> None:
        self._apply(transitions.clear_cart)

    def totals(self, tax_rate: Decimal, decimals: int = 2) -> CartTotals:
        return self._cart.totals(tax_rate, decimals)

    def snapshot(self) -> List[Dict[str, Any]]:
        """Detached copy of the lines handed to checkout."""
        return [
            {
                "id": it.id,
                "name": it.name,
                "price": it.price,
                "quantity": it.quantity,
                "image": it.image,
                "description": it.description,
            }
            for it in self._cart
        ]


def persisted_store(storage: ClientStorage, key: str = CART_STORAGE_KEY) -> CartStore:
    store = CartStore(load_cart(storage, key))
    store.subscribe(CartPersister(storage, key))
    return store


class CartSessions:
    """
    Registry of per-session cart stores.

    Built once by the application and shared through ``app.state``; a store
    is created and rehydrated the first time its session is seen. At most
    ``max_sessions`` stores are held, the least recently used one is ended
    first and rehydrates from storage if its session comes back. Two
    processes serving the same session do not merge: the last write to
    storage wins.
    """

    def __init__(self, storage_factory: Callable[[str], ClientStorage], max_sessions: int = 1000) -> None:
        self._storage_factory = storage_factory
        self.max_sessions = max(1, max_sessions)
        self._stores: OrderedDict[str, CartStore] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> CartStore:
        with self._lock:
            store = self._stores.get(session_id)
            if store is not None:
                self._stores.move_to_end(session_id)
                return store
            store = persisted_store(self._storage_factory(session_id))
            self._stores[session_id] = store
            log.debug("cart store opened for session %s (%d lines)", session_id, len(store.cart))
            while len(self._stores) > self.max_sessions:
                evicted, _ = self._stores.popitem(last=False)
                log.debug("cart store for session %s ended (idle)", evicted)
            return store

    def item_count(self, session_id: str) -> int:
        """Item count for the navbar; reads storage instead of opening a store."""
        with self._lock:
            store = self._stores.get(session_id)
        if store is not None:
            return store.item_count
        return load_cart(self._storage_factory(session_id)).item_count

    def end(self, session_id: str) -> None:
        with self._lock:
            self._stores.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._stores

    def __len__(self) -> int:
        return len(self._stores)
