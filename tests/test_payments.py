import hashlib
import hmac
import json
import time

import pytest
import stripe

from ticketqr.errors import (
    AuthenticationError, PaymentServiceError, ValidationError,
)
from ticketqr.payments import MockPay, StripePay

WEBHOOK_SECRET = "whsec_test_secret"


def _stripe_header(payload: bytes, secret=WEBHOOK_SECRET, ts=None) -> str:
    ts = int(time.time()) if ts is None else ts
    signed = f"{ts}.{payload.decode()}".encode()
    sig = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def _event() -> bytes:
    return json.dumps({
        "id": "evt_1",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_1", "metadata": {"female_qty": "1"}}},
    }).encode()


def test_stripe_verifies_raw_payload():
    adapter = StripePay("sk_test_x", WEBHOOK_SECRET)
    payload = _event()

    event = adapter.verify_webhook(
        payload, {"stripe-signature": _stripe_header(payload)}
    )

    assert adapter.event_type(event) == "payment_intent.succeeded"
    assert adapter.event_object(event)["id"] == "pi_1"


@pytest.mark.parametrize("header", [
    None,
    "",
    "t=1,v1=deadbeef",
])
def test_stripe_rejects_bad_headers(header):
    adapter = StripePay("sk_test_x", WEBHOOK_SECRET)
    headers = {} if header is None else {"stripe-signature": header}

    with pytest.raises(AuthenticationError):
        adapter.verify_webhook(_event(), headers)


def test_stripe_rejects_other_secret():
    adapter = StripePay("sk_test_x", WEBHOOK_SECRET)
    payload = _event()

    with pytest.raises(AuthenticationError):
        adapter.verify_webhook(
            payload, {"stripe-signature": _stripe_header(payload, "whsec_other")}
        )


def test_stripe_rejects_stale_timestamp():
    adapter = StripePay("sk_test_x", WEBHOOK_SECRET)
    payload = _event()
    header = _stripe_header(payload, ts=int(time.time()) - 3600)

    with pytest.raises(AuthenticationError):
        adapter.verify_webhook(payload, {"stripe-signature": header})


def test_stripe_create_intent_passes_amount_and_metadata(monkeypatch):
    calls = {}

    class Intent:
        id = "pi_from_stripe"
        client_secret = "pi_from_stripe_secret_x"

    def fake_create(**kwargs):
        calls.update(kwargs)
        return Intent()

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    adapter = StripePay("sk_test_x", WEBHOOK_SECRET)

    result = adapter.create_intent(432, "cad", {"female_qty": "2"})

    assert result == {
        "payment_intent_id": "pi_from_stripe",
        "client_secret": "pi_from_stripe_secret_x",
    }
    assert calls["amount"] == 432
    assert calls["currency"] == "cad"
    assert calls["api_key"] == "sk_test_x"
    assert calls["automatic_payment_methods"] == {"enabled": True}
    assert calls["metadata"] == {"female_qty": "2"}


def test_stripe_errors_become_payment_service_errors(monkeypatch):
    def fake_create(**kwargs):
        raise stripe.InvalidRequestError("bad amount", "amount")

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

    with pytest.raises(PaymentServiceError):
        StripePay("sk_test_x", WEBHOOK_SECRET).create_intent(1, "cad", {})


def test_mockpay_round_trip():
    adapter = MockPay("secret")
    psid = adapter.create_intent(100, "cad", {"male_qty": "1"})["payment_intent_id"]
    payload = adapter.build_event(psid, "succeeded")

    event = adapter.verify_webhook(
        payload, {MockPay.SIGNATURE_HEADER: adapter.sign(payload)}
    )

    assert event["type"] == "payment_intent.succeeded"
    assert adapter.event_object(event)["metadata"] == {"male_qty": "1"}


def test_mockpay_rejects_foreign_signature():
    adapter = MockPay("secret")
    psid = adapter.create_intent(100, "cad", {})["payment_intent_id"]
    payload = adapter.build_event(psid, "succeeded")

    with pytest.raises(AuthenticationError):
        adapter.verify_webhook(
            payload, {MockPay.SIGNATURE_HEADER: MockPay("other").sign(payload)}
        )


def test_mockpay_unknown_intent():
    assert MockPay("secret").build_event("pi_mock_missing", "succeeded") is None


@pytest.mark.parametrize("payload", [b"[1, 2]", b"\"evt\"", b"42", b"null"])
def test_mockpay_rejects_signed_non_object(payload):
    adapter = MockPay("secret")

    with pytest.raises(ValidationError) as excinfo:
        adapter.verify_webhook(
            payload, {MockPay.SIGNATURE_HEADER: adapter.sign(payload)}
        )

    assert excinfo.value.details == [
        {"field": "body", "message": "Event must be a JSON object"}
    ]
