from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, TypedDict
import base64
import hashlib
import hmac
import json
import logging
import time
import uuid

import stripe

from .errors import AuthenticationError, PaymentServiceError, ValidationError
from .helpers import ct_equal

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"


# ----------------------------
# Payment Adapter Interface
# ----------------------------
class IntentResult(TypedDict):
    payment_intent_id: str
    client_secret: str


class PaymentAdapter(ABC):
    name: str

    # blocking; the server runs it in the threadpool
    @abstractmethod
    def create_intent(
            self, amount: int, currency: str, metadata: Dict[str, str]
    ) -> IntentResult: ...

    # must be given the raw request bytes, before any parsing
    @abstractmethod
    def verify_webhook(
            self, payload: bytes, headers: Mapping[str, str]
    ) -> Dict[str, Any]: ...

    def event_type(self, event: Dict[str, Any]) -> str:
        return event.get("type", "")

    def event_object(self, event: Dict[str, Any]) -> Dict[str, Any]:
        return (event.get("data") or {}).get("object") or {}


def _parse_event(payload: bytes) -> Dict[str, Any]:
    try:
        event = json.loads(payload.decode())
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError.for_field("body", "Invalid JSON")
    if not isinstance(event, dict):
        raise ValidationError.for_field("body", "Event must be a JSON object")
    return event


# ----------------------------
# Stripe implementation
# ----------------------------
class StripePay(PaymentAdapter):
    name = "stripe"
    SIGNATURE_HEADER = "stripe-signature"

    def __init__(self, secret_key: str, webhook_secret: str) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    def create_intent(
            self, amount: int, currency: str, metadata: Dict[str, str]
    ) -> IntentResult:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.error("stripe PaymentIntent.create failed: %s", exc)
            raise PaymentServiceError(
                "Failed to create payment. Please try again."
            ) from exc
        return {
            "payment_intent_id": intent.id,
            "client_secret": intent.client_secret,
        }

    def verify_webhook(
            self, payload: bytes, headers: Mapping[str, str]
    ) -> Dict[str, Any]:
        sig = headers.get(self.SIGNATURE_HEADER)
        if not sig:
            raise AuthenticationError("Missing stripe-signature header")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), sig, self.webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            raise AuthenticationError(
                "Webhook signature verification failed"
            ) from exc
        return _parse_event(payload)


# ----------------------------
# MockPay implementation
# ----------------------------
MOCK_EVENT_TYPES = {
    "succeeded": PAYMENT_SUCCEEDED,
    "payment_failed": "payment_intent.payment_failed",
    "canceled": "payment_intent.canceled",
}


class MockPay(PaymentAdapter):
    """Local stand-in for Stripe: intents live in memory and webhooks are
    signed with base64(HMAC-SHA256(secret, raw body))."""

    name = "mock"
    SIGNATURE_HEADER = "x-mockpay-signature"

    def __init__(self, secret: str) -> None:
        self.secret = secret
        self.intents: Dict[str, Dict[str, Any]] = {}

    def create_intent(
            self, amount: int, currency: str, metadata: Dict[str, str]
    ) -> IntentResult:
        psid = f"pi_mock_{uuid.uuid4().hex}"
        client_secret = f"{psid}_secret_{uuid.uuid4().hex[:16]}"
        self.intents[psid] = {
            "id": psid,
            "object": "payment_intent",
            "amount": amount,
            "currency": currency,
            "metadata": dict(metadata),
            "created": int(time.time()),
        }
        return {"payment_intent_id": psid, "client_secret": client_secret}

    def sign(self, payload: bytes) -> str:
        mac = hmac.new(self.secret.encode(), payload, hashlib.sha256).digest()
        return base64.b64encode(mac).decode()

    def build_event(self, psid: str, kind: str) -> Optional[bytes]:
        """Serialized event for a known intent, None if the intent is
        unknown. `kind` must be a key of MOCK_EVENT_TYPES."""
        intent = self.intents.get(psid)
        if intent is None:
            return None
        event = {
            "id": f"evt_{uuid.uuid4().hex}",
            "object": "event",
            "type": MOCK_EVENT_TYPES[kind],
            "created": int(time.time()),
            "data": {"object": intent},
        }
        return json.dumps(event).encode()

    def verify_webhook(
            self, payload: bytes, headers: Mapping[str, str]
    ) -> Dict[str, Any]:
        sig = headers.get(self.SIGNATURE_HEADER)
        if not sig or not ct_equal(self.sign(payload), sig):
            raise AuthenticationError("Invalid signature")
        return _parse_event(payload)
