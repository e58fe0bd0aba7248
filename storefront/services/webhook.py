from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import stripe

from storefront.config import Settings
from storefront.db.sqlite import create_order

log = logging.getLogger(__name__)

COMPLETED_EVENT = "checkout.session.completed"


@dataclass(frozen=True)
class WebhookOutcome:
    status_code: int
    message: str
    order_id: Optional[int] = None


class PaymentWebhookReceiver:
    """Verifies provider signatures and turns completed checkouts into orders."""

    def __init__(self, settings: Settings) -> None:
        self.db_path = settings.db_path
        self.secret_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret

    def status(self) -> Dict[str, Any]:
        return {
            "hasStripeSecret": bool(self.secret_key),
            "hasWebhookSecret": bool(self.webhook_secret),
        }

    def handle(self, payload: bytes, signature: Optional[str]) -> WebhookOutcome:
        if not signature:
            log.error("webhook without stripe-signature header")
            return WebhookOutcome(400, "Missing Stripe signature")
        if not self.webhook_secret:
            log.error("STRIPE_WEBHOOK_SECRET is not set")
            return WebhookOutcome(500, "Missing webhook secret")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            log.error("webhook signature verification failed: %s", e)
            return WebhookOutcome(400, "Invalid Stripe signature")

        try:
            event = json.loads(payload)
            if event.get("type") != COMPLETED_EVENT:
                log.info("webhook event %s ignored", event.get("type"))
                return WebhookOutcome(200, "Webhook received")
            return self._checkout_completed(event["data"]["object"])
        except Exception:
            log.exception("webhook processing failed")
            return WebhookOutcome(500, "Webhook error")

    def _checkout_completed(self, session: Dict[str, Any]) -> WebhookOutcome:
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        raw_items = metadata.get("cartItems")
        if not user_id or not raw_items:
            log.error("checkout session %s has no order metadata", session.get("id"))
            return WebhookOutcome(400, "Missing required metadata")

        items = _order_lines(json.loads(raw_items))
        amount = Decimal(session.get("amount_total") or 0) / 100
        order_id, created = create_order(
            self.db_path, user_id, float(amount), session.get("payment_intent"), items
        )
        if created:
            log.info("order %s created for user %s", order_id, user_id)
        else:
            log.info("order %s already recorded for payment %s", order_id, session.get("payment_intent"))
        return WebhookOutcome(200, "Webhook received", order_id=order_id)


def _order_lines(cart_items: List[Dict[str, Any]]) -> List[Tuple[str, int]]:
    return [(str(it["id"]), int(it["quantity"])) for it in cart_items]
