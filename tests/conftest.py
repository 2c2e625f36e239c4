import os

# settings are read when ticketqr.server is imported
os.environ["PAYMENT_BACKEND"] = "mock"
os.environ["ORDER_STORE_BACKEND"] = "memory"
os.environ["MOCK_SECRET"] = "test-mock-secret"
os.environ["APP_ENV"] = "development"
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("STRIPE_WEBHOOK_SECRET", None)
os.environ.pop("RATE_LIMIT", None)

import pytest
from fastapi.testclient import TestClient

from ticketqr.payments import MockPay
from ticketqr.server import app, limiter


@pytest.fixture
def client():
    limiter.reset()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def adapter(client) -> MockPay:
    return app.state.adapter


@pytest.fixture
def store(client):
    return app.state.order_store


def create_intent(client, female_qty=2, male_qty=1) -> str:
    response = client.post(
        "/api/checkout/create-intent",
        json={"femaleQty": female_qty, "maleQty": male_qty, "language": "en"},
    )
    assert response.status_code == 200
    return response.json()["paymentIntentId"]


def post_webhook(client, payload: bytes, signature=None):
    headers = {"content-type": "application/json"}
    if signature is not None:
        headers[MockPay.SIGNATURE_HEADER] = signature
    return client.post("/api/webhooks/stripe", content=payload, headers=headers)
