import logging
from typing import Dict, Optional, Set

from ..order import Order
from ._base import OrderStore as _OrderStore

logger = logging.getLogger(__name__)


class OrderStore(_OrderStore):
    """Process-local store. Everything is lost on restart.

    No locks: each method runs to completion without awaiting, so on a
    single event loop `finalize()` is atomic.
    """

    def __init__(self) -> None:
        self._orders: Dict[str, Order] = {}
        self._processed: Set[str] = set()

    async def save(self, order: Order) -> None:
        self._orders[order.payment_intent_id] = order
        logger.info("saved order for %s", order.payment_intent_id)

    async def get(self, payment_intent_id: str) -> Optional[Order]:
        return self._orders.get(payment_intent_id)

    async def is_processed(self, payment_intent_id: str) -> bool:
        return payment_intent_id in self._processed

    async def mark_processed(self, payment_intent_id: str) -> None:
        self._processed.add(payment_intent_id)
        logger.info("marked %s as processed", payment_intent_id)

    async def finalize(self, order: Order) -> bool:
        psid = order.payment_intent_id
        if psid in self._processed:
            return False
        self._processed.add(psid)
        self._orders[psid] = order
        logger.info("finalized order for %s", psid)
        return True
