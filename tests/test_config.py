import pytest

from ticketqr.config import load_settings
from ticketqr.errors import ConfigError


def test_stripe_requires_secrets():
    with pytest.raises(ConfigError, match="STRIPE_SECRET_KEY"):
        load_settings({})
    with pytest.raises(ConfigError, match="STRIPE_WEBHOOK_SECRET"):
        load_settings({"STRIPE_SECRET_KEY": "sk_test_x"})


def test_stripe_defaults():
    settings = load_settings({
        "STRIPE_SECRET_KEY": "sk_test_x",
        "STRIPE_WEBHOOK_SECRET": "whsec_x",
    })

    assert settings.payment_backend == "stripe"
    assert settings.order_store_backend == "memory"
    assert settings.port == 3000
    assert settings.host == "0.0.0.0"
    assert settings.is_development
    assert settings.rate_limit == "100/minute"
    assert settings.db_gate_limit == 10


def test_mock_backend_needs_no_stripe_keys():
    settings = load_settings({"PAYMENT_BACKEND": "mock"})

    assert settings.payment_backend == "mock"
    assert settings.stripe_secret_key is None
    assert settings.mock_secret == "supersecret"


def test_pg_store_requires_database_url():
    with pytest.raises(ConfigError, match="DATABASE_URL"):
        load_settings({"PAYMENT_BACKEND": "mock", "ORDER_STORE_BACKEND": "pg"})


@pytest.mark.parametrize("env", [
    {"PAYMENT_BACKEND": "paypal"},
    {"PAYMENT_BACKEND": "mock", "ORDER_STORE_BACKEND": "mongo"},
    {"PAYMENT_BACKEND": "mock", "PORT": "eighty"},
    {"PAYMENT_BACKEND": "mock", "DB_GATE_LIMIT": "lots"},
])
def test_invalid_values(env):
    with pytest.raises(ConfigError):
        load_settings(env)


def test_production_flag():
    settings = load_settings({"PAYMENT_BACKEND": "mock", "APP_ENV": "production"})

    assert not settings.is_development
