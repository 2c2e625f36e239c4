from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError
from .model.orderstore import BACKENDS as STORE_BACKENDS

PAYMENT_BACKENDS = ("stripe", "mock")


@dataclass(frozen=True)
class Settings:
    payment_backend: str
    stripe_secret_key: Optional[str]
    stripe_webhook_secret: Optional[str]
    mock_secret: str
    mock_webhook_url: str
    order_store_backend: str
    redis_url: str
    database_url: Optional[str]
    frontend_origin: str
    app_env: str
    host: str
    port: int
    log_level: str
    rate_limit: str = "100/minute"
    db_gate_limit: int = 10

    @property
    def is_development(self) -> bool:
        return self.app_env != "production"


def _required(env: Mapping[str, str], name: str, why: str) -> str:
    value = env.get(name)
    if not value:
        raise ConfigError(f"{name} environment variable is required {why}")
    return value


def load_settings(env: Mapping[str, str] = os.environ) -> Settings:
    """Read settings from the environment. Raises ConfigError when a
    required secret is missing; callers treat that as fatal."""
    payment_backend = env.get("PAYMENT_BACKEND", "stripe").lower()
    if payment_backend not in PAYMENT_BACKENDS:
        raise ConfigError(f"PAYMENT_BACKEND must be one of {PAYMENT_BACKENDS}")

    stripe_secret_key = env.get("STRIPE_SECRET_KEY")
    stripe_webhook_secret = env.get("STRIPE_WEBHOOK_SECRET")
    if payment_backend == "stripe":
        why = "for PAYMENT_BACKEND=stripe"
        stripe_secret_key = _required(env, "STRIPE_SECRET_KEY", why)
        stripe_webhook_secret = _required(env, "STRIPE_WEBHOOK_SECRET", why)

    store_backend = env.get("ORDER_STORE_BACKEND", "memory").lower()
    if store_backend not in STORE_BACKENDS:
        raise ConfigError(
            f"ORDER_STORE_BACKEND must be one of {STORE_BACKENDS}"
        )
    database_url = env.get("DATABASE_URL")
    if store_backend == "pg":
        database_url = _required(
            env, "DATABASE_URL", "for ORDER_STORE_BACKEND=pg"
        )

    try:
        port = int(env.get("PORT", "3000"))
    except ValueError:
        raise ConfigError("PORT must be an integer")
    try:
        db_gate_limit = int(env.get("DB_GATE_LIMIT", "10"))
    except ValueError:
        raise ConfigError("DB_GATE_LIMIT must be an integer")

    return Settings(
        payment_backend=payment_backend,
        stripe_secret_key=stripe_secret_key,
        stripe_webhook_secret=stripe_webhook_secret,
        mock_secret=env.get("MOCK_SECRET", "supersecret"),
        mock_webhook_url=env.get(
            "MOCK_WEBHOOK_URL", "http://localhost:3000/api/webhooks/stripe"
        ),
        order_store_backend=store_backend,
        redis_url=env.get("REDIS_URL", "redis://127.0.0.1:6379"),
        database_url=database_url,
        frontend_origin=env.get("FRONTEND_ORIGIN", "http://localhost:5500"),
        app_env=env.get("APP_ENV", "development").lower(),
        host=env.get("HOST", "0.0.0.0"),
        port=port,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        rate_limit=env.get("RATE_LIMIT", "100/minute"),
        db_gate_limit=db_gate_limit,
    )
