from __future__ import annotations

import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

import stripe
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from storefront.config import Settings
from storefront.constants import CHECKOUT_SESSION_PLACEHOLDER
from storefront.exceptions import CheckoutError

log = logging.getLogger(__name__)


class CheckoutLine(BaseModel):
    id: str
    name: str
    price: Decimal = Field(ge=0, allow_inf_nan=False)
    quantity: int = Field(ge=1)
    image: Optional[str] = None
    description: Optional[str] = ""


_lines_adapter = TypeAdapter(List[CheckoutLine])


def to_cents(price: Decimal) -> int:
    return int((price * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CheckoutService:
    """Creates hosted checkout sessions from a cart snapshot."""

    def __init__(self, settings: Settings) -> None:
        self.secret_key = settings.stripe_secret_key
        self.public_url = settings.public_url
        self.currency = settings.currency

    def build_params(self, user_id: str, lines: Sequence[CheckoutLine]) -> Dict[str, Any]:
        return {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": ln.name,
                            "description": ln.description or "",
                            "images": [ln.image] if ln.image else [],
                        },
                        "unit_amount": to_cents(ln.price),
                    },
                    "quantity": ln.quantity,
                }
                for ln in lines
            ],
            "success_url": f"{self.public_url}/success?session_id={CHECKOUT_SESSION_PLACEHOLDER}",
            "cancel_url": f"{self.public_url}/cart",
            "metadata": {
                "userId": user_id,
                "cartItems": json.dumps(
                    [
                        {"id": ln.id, "name": ln.name, "price": float(ln.price), "quantity": ln.quantity}
                        for ln in lines
                    ]
                ),
            },
        }

    def create_session(self, user_id: Optional[str], cart_items: Any) -> str:
        """Returns the redirect url of a new checkout session."""
        if not user_id:
            raise CheckoutError("Unauthorized", status_code=401)
        if not cart_items:
            raise CheckoutError("Cart is empty", status_code=400)
        try:
            lines = _lines_adapter.validate_python(cart_items)
        except ValidationError as e:
            raise CheckoutError("Invalid cart items", status_code=400, details={"errors": e.error_count()}) from e

        if not self.secret_key:
            log.error("STRIPE_SECRET_KEY is not set")
            raise CheckoutError("Payment configuration error", status_code=500)

        params = self.build_params(user_id, lines)
        try:
            session = stripe.checkout.Session.create(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            log.error("checkout session failed for user %s: %s", user_id, e)
            raise CheckoutError("Failed to create checkout session", status_code=500) from e

        url = getattr(session, "url", None)
        if not url:
            raise CheckoutError("Failed to create checkout session", status_code=500)
        log.info("checkout session %s created for user %s", getattr(session, "id", "?"), user_id)
        return url
