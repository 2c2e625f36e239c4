from __future__ import annotations
import logging
import sys

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.concurrency import run_in_threadpool
import redis.asyncio as redis

from .checkout import create_payment_intent
from .config import load_settings
from .errors import (
    AuthenticationError, ConfigError, TicketQRError, ValidationError,
)
from .helpers import is_payment_intent_id, now_ts, to_iso
from .infra.sql import make_async_engine
from .model.orderstore import OrderStore, new_store
from .payments import (
    MOCK_EVENT_TYPES, PAYMENT_SUCCEEDED, MockPay, PaymentAdapter, StripePay,
)
from .schemas import (
    CreateIntentRequest,
    CreateIntentResponse,
    HealthResponse,
    OrderQRResponse,
    WebhookAck,
)
from .tokens import render_qr_data_url
from .webhook import fulfill_payment_intent

logger = logging.getLogger(__name__)

# ----------------------------
# Config
# ----------------------------
try:
    settings = load_settings()
except ConfigError as exc:
    # missing secrets are fatal at startup
    logging.basicConfig(level=logging.INFO)
    logger.critical("refusing to start: %s", exc)
    sys.exit(1)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title="TicketQR",
    default_response_class=ORJSONResponse,
)

# the webhook is server-to-server; CORS only matters for the browser client
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development
    else [settings.frontend_origin],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
    max_age=86400,
)

# per client IP; the webhook is exempt (see payments_webhook)
limiter = Limiter(
    key_func=get_remote_address, default_limits=[settings.rate_limit]
)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

MAX_BODY_BYTES = 1024 * 1024

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; style-src 'self' 'unsafe-inline'; "
        "script-src 'self'; img-src 'self' data: https:"
    ),
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "no-referrer",
}


def _too_large() -> ORJSONResponse:
    return ORJSONResponse(
        status_code=413,
        content={
            "statusCode": 413,
            "error": "Payload Too Large",
            "message": f"Request body exceeds {MAX_BODY_BYTES} bytes.",
        },
    )


@app.middleware("http")
async def _limit_body_size(request: Request, call_next):
    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > MAX_BODY_BYTES:
        return _too_large()
    return await call_next(request)


@app.middleware("http")
async def _security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(SECURITY_HEADERS)
    return response


def new_adapter() -> PaymentAdapter:
    if settings.payment_backend == "mock":
        return MockPay(settings.mock_secret)
    return StripePay(
        settings.stripe_secret_key, settings.stripe_webhook_secret
    )


def payment_adapter(request: Request) -> PaymentAdapter:
    return request.app.state.adapter


def order_store(request: Request) -> OrderStore:
    return request.app.state.order_store


# ---
# startup / shutdown
# ---
@app.on_event("startup")
async def _say_hello():
    logger.info("=" * 50)
    logger.info("TicketQR is starting up...")
    logger.info("   - Payment backend:     %s", settings.payment_backend)
    logger.info("   - Order store backend: %s", settings.order_store_backend)
    logger.info(
        "   - CORS origin:         %s",
        "any (development)" if settings.is_development
        else settings.frontend_origin,
    )
    logger.info("=" * 50)


@app.on_event("startup")
async def _payments_start():
    app.state.adapter = new_adapter()


@app.on_event("startup")
async def _store_start():
    backend = settings.order_store_backend
    if backend == "pg":
        from .model.orderstore._postgres import create_schema
        engine = make_async_engine(settings.database_url)
        async with engine.begin() as conn:
            await create_schema(conn)
        app.state.order_store = new_store(
            backend, engine=engine, max_concurrency=settings.db_gate_limit
        )
    elif backend == "redis":
        r = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
            retry_on_timeout=True,
        )
        app.state.order_store = new_store(backend, r=r)
    else:
        app.state.order_store = new_store(backend)


@app.on_event("startup")
async def _http_client_start():
    app.state.http = httpx.AsyncClient(timeout=5.0)


@app.on_event("shutdown")
async def _store_stop():
    store = getattr(app.state, "order_store", None)
    if store is not None:
        await store.close()
        app.state.order_store = None


@app.on_event("shutdown")
async def _http_client_stop():
    http = getattr(app.state, "http", None)
    if http is not None:
        await http.aclose()
        app.state.http = None


# ----------------------------
# Error mapping
# ----------------------------
@app.exception_handler(TicketQRError)
async def _ticketqr_error(request: Request, exc: TicketQRError):
    if isinstance(exc, AuthenticationError):
        logger.warning("webhook rejected: %s", exc)
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict())


# sync: SlowAPIMiddleware calls it without awaiting
@app.exception_handler(RateLimitExceeded)
def _rate_limited(request: Request, exc: RateLimitExceeded):
    retry_after = exc.limit.limit.get_expiry()
    return ORJSONResponse(
        status_code=429,
        content={
            "statusCode": 429,
            "error": "Too Many Requests",
            "message": (
                f"Rate limit exceeded. Try again in {retry_after} seconds."
            ),
        },
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def _request_validation_error(
    request: Request, exc: RequestValidationError
):
    details = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        details.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return ORJSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": details},
    )


@app.exception_handler(Exception)
async def _unexpected_error(request: Request, exc: Exception):
    logger.exception("unhandled error on %s", request.url.path)
    return ORJSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred.",
        },
    )


# ----------------------------
# API: Checkout
# ----------------------------
@app.post("/api/checkout/create-intent", response_model=CreateIntentResponse)
async def create_intent(
    body: CreateIntentRequest,
    adapter: PaymentAdapter = Depends(payment_adapter),
):
    return await create_payment_intent(
        adapter, body.female_qty, body.male_qty, body.language
    )


# ----------------------------
# Webhook endpoint (shared for Stripe/Mock)
# ----------------------------
@app.post("/api/webhooks/stripe", response_model=WebhookAck)
@limiter.exempt
async def payments_webhook(
    request: Request,
    adapter: PaymentAdapter = Depends(payment_adapter),
    store: OrderStore = Depends(order_store),
):
    # signature covers the exact bytes; never re-serialize before verifying
    payload = await request.body()
    if len(payload) > MAX_BODY_BYTES:
        return _too_large()
    event = adapter.verify_webhook(payload, request.headers)
    kind = adapter.event_type(event)
    logger.info("received event %s (%s)", kind, event.get("id"))

    if kind == PAYMENT_SUCCEEDED:
        await fulfill_payment_intent(store, adapter.event_object(event))
    else:
        logger.info("unhandled event type: %s", kind)

    # ack fast so the processor does not retry
    return {"received": True}


# ----------------------------
# API: Order QR (polled by the client after payment)
# ----------------------------
@app.get(
    "/api/orders/{payment_intent_id}/qr",
    response_model=OrderQRResponse,
    response_model_exclude_none=True,
)
async def get_order_qr(
    payment_intent_id: str,
    store: OrderStore = Depends(order_store),
):
    if not is_payment_intent_id(payment_intent_id):
        return ORJSONResponse(
            status_code=400,
            content={"error": "Invalid PaymentIntent ID format"},
        )

    order = await store.get(payment_intent_id)
    if order is None:
        # not created yet (webhook still in flight) -> client keeps polling
        return {"status": "pending"}

    data_url = await run_in_threadpool(render_qr_data_url, order.qr_token)
    return {
        "status": "ready",
        "qr_token": order.qr_token,
        "qr_image_data_url": data_url,
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    return {"status": "ok", "timestamp": to_iso(now_ts())}


# ----------------------------
# MockPay: emit a signed webhook for a mock intent
# ----------------------------
@app.post("/mockpay/{payment_intent_id}/emit")
async def mockpay_emit(
    payment_intent_id: str,
    kind: str = "succeeded",
    adapter: PaymentAdapter = Depends(payment_adapter),
):
    if not isinstance(adapter, MockPay):
        raise HTTPException(404, detail="mock payments are disabled")
    if kind not in MOCK_EVENT_TYPES:
        raise ValidationError.for_field(
            "kind", f"must be one of {sorted(MOCK_EVENT_TYPES)}"
        )

    payload = adapter.build_event(payment_intent_id, kind)
    if payload is None:
        raise HTTPException(404, detail="payment intent not found")

    client_http: httpx.AsyncClient = app.state.http
    try:
        resp = await client_http.post(
            settings.mock_webhook_url,
            content=payload,
            headers={
                MockPay.SIGNATURE_HEADER: adapter.sign(payload),
                "content-type": "application/json",
            },
        )
    except httpx.HTTPError as exc:
        # the caller can simply emit again
        logger.warning("mock webhook delivery failed: %s", exc)
        return {"delivered": False, "event_type": MOCK_EVENT_TYPES[kind]}

    return {
        "delivered": resp.is_success,
        "status_code": resp.status_code,
        "event_type": MOCK_EVENT_TYPES[kind],
    }
