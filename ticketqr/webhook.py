import logging
from typing import Any, Dict, Optional

from .helpers import now_ts, token_preview
from .model.order import Order, OrderStatus
from .model.orderstore import OrderStore
from .tokens import generate_access_token

logger = logging.getLogger(__name__)


def _qty(metadata: Dict[str, Any], key: str) -> int:
    raw = metadata.get(key)
    if raw in (None, ""):
        return 0
    try:
        return max(0, int(raw))
    except (TypeError, ValueError):
        logger.warning("ignoring malformed metadata %s=%r", key, raw)
        return 0


async def fulfill_payment_intent(
    store: OrderStore, intent: Dict[str, Any]
) -> Optional[Order]:
    """Issue the Order for a succeeded payment intent, at most once.

    Returns the new Order, or None when the intent was already processed
    (including a duplicate that won the race between our check and the
    write).
    """
    psid = intent.get("id")
    if not psid:
        logger.warning("payment_intent.succeeded without an intent id")
        return None

    if await store.is_processed(psid):
        logger.info("payment intent already processed: %s", psid)
        return None

    metadata = intent.get("metadata") or {}
    order = Order(
        payment_intent_id=psid,
        qr_token=generate_access_token(),
        status=OrderStatus.VALID,
        created_at=now_ts(),
        female_qty=_qty(metadata, "female_qty"),
        male_qty=_qty(metadata, "male_qty"),
    )

    # marker and order land together or not at all
    if not await store.finalize(order):
        logger.info("payment intent processed concurrently: %s", psid)
        return None

    logger.info(
        "order created for %s, token %s", psid, token_preview(order.qr_token)
    )
    return order
