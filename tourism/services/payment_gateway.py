"""Thin Stripe layer: payment intents, refunds and webhook signatures.

Only the calls the booking flow needs. Failures are raised as
``PaymentProviderError`` straight away; nothing here retries.
"""
import json
import logging
from dataclasses import dataclass
from decimal import Decimal

import stripe

from tourism.core.config import settings
from tourism.core.errors import AppError, ProviderError

logger = logging.getLogger(__name__)


class PaymentProviderError(ProviderError):
    pass


class WebhookSignatureError(AppError):
    status_code = 401

    def __init__(self):
        super().__init__("Invalid webhook signature")


def to_minor_units(amount) -> int:
    """INR/USD style currencies: 2 decimal places."""
    return int((Decimal(str(amount)) * 100).to_integral_value())


def _intent_dict(obj) -> dict:
    return {
        "id": obj["id"],
        "status": obj["status"],
        "client_secret": obj["client_secret"],
        "amount": obj["amount"],
        "currency": obj["currency"],
        "metadata": dict(obj["metadata"] or {}),
    }


@dataclass
class StripeConfig:
    secret_key: str


class StripeClient:
    def __init__(self, cfg: StripeConfig):
        self.cfg = cfg

    def create_payment_intent(self, *, amount_minor: int, currency: str, metadata: dict) -> dict:
        try:
            obj = stripe.PaymentIntent.create(
                amount=amount_minor,
                currency=currency.lower(),
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                api_key=self.cfg.secret_key,
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe error: {e.user_message or e}")
        return _intent_dict(obj)

    def retrieve_payment_intent(self, intent_id: str) -> dict:
        try:
            obj = stripe.PaymentIntent.retrieve(intent_id, api_key=self.cfg.secret_key)
        except stripe.InvalidRequestError:
            # unknown intent id: treat as not paid rather than as an outage
            return {"id": intent_id, "status": "not_found", "metadata": {}}
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe error: {e.user_message or e}")
        return _intent_dict(obj)

    def create_refund(self, *, payment_intent: str, amount_minor: int, reason: str = "requested_by_customer") -> dict:
        try:
            obj = stripe.Refund.create(
                payment_intent=payment_intent,
                amount=amount_minor,
                reason=reason,
                api_key=self.cfg.secret_key,
            )
        except stripe.StripeError as e:
            logger.error("Refund for %s failed: %s", payment_intent, e)
            raise PaymentProviderError(f"Stripe refund failed: {e.user_message or e}")
        return {"id": obj["id"], "status": obj["status"], "amount": obj["amount"]}


class SandboxClient:
    """Dev/test stand-in when PAYMENTS_SANDBOX is on: every intent succeeds."""

    def create_payment_intent(self, *, amount_minor: int, currency: str, metadata: dict) -> dict:
        ref = metadata.get("bookingId", "booking")
        return {
            "id": f"pi_sandbox_{ref}",
            "client_secret": f"pi_sandbox_{ref}_secret",
            "amount": amount_minor,
            "currency": currency.lower(),
            "status": "requires_payment_method",
            "metadata": dict(metadata),
        }

    def retrieve_payment_intent(self, intent_id: str) -> dict:
        return {"id": intent_id, "status": "succeeded", "metadata": {}}

    def create_refund(self, *, payment_intent: str, amount_minor: int, reason: str = "requested_by_customer") -> dict:
        return {"id": f"re_sandbox_{payment_intent}", "status": "succeeded", "amount": amount_minor}


def get_payment_client():
    if settings.PAYMENTS_SANDBOX:
        return SandboxClient()
    if not settings.STRIPE_SECRET_KEY:
        raise PaymentProviderError("Stripe is not configured (missing STRIPE_SECRET_KEY)")
    return StripeClient(StripeConfig(secret_key=settings.STRIPE_SECRET_KEY))


def parse_webhook_event(payload: bytes, signature_header: str | None, secret: str, tolerance: int = 300) -> dict:
    """Check the ``Stripe-Signature`` header against the endpoint secret and decode the event.

    Stale timestamps (older than ``tolerance`` seconds) fail like a bad signature.
    """
    if not signature_header or not secret:
        raise WebhookSignatureError()
    body = payload.decode("utf-8")
    try:
        stripe.WebhookSignature.verify_header(body, signature_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        logger.warning("Rejected webhook: %s", e)
        raise WebhookSignatureError()
    try:
        return json.loads(body or "{}")
    except ValueError:
        raise AppError("Malformed webhook payload")
