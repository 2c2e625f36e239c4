from __future__ import annotations
from typing import Optional
import redis.asyncio as redis

from ..order import Order
from ._base import OrderStore as _OrderStore


# ---- keys
def k_order(psid: str) -> str: return f"order:{psid}"
def k_processed(psid: str) -> str: return f"processed:{psid}"


# KEYS[1] = processed marker, KEYS[2] = order hash, ARGV = field/value pairs.
# Runs atomically on the server: either both keys are written or neither.
FINALIZE_LUA = """
if redis.call('SET', KEYS[1], '1', 'NX') then
  redis.call('HSET', KEYS[2], unpack(ARGV))
  return 1
end
return 0
"""


class OrderStore(_OrderStore):
    def __init__(self, r: redis.Redis) -> None:
        # expects decode_responses=True
        self.r = r
        self._finalize = r.register_script(FINALIZE_LUA)

    async def save(self, order: Order) -> None:
        await self.r.hset(
            k_order(order.payment_intent_id), mapping=order.to_mapping()
        )

    async def get(self, payment_intent_id: str) -> Optional[Order]:
        h = await self.r.hgetall(k_order(payment_intent_id))
        return Order.from_mapping(h) if h else None

    async def is_processed(self, payment_intent_id: str) -> bool:
        return bool(await self.r.exists(k_processed(payment_intent_id)))

    async def mark_processed(self, payment_intent_id: str) -> None:
        await self.r.set(k_processed(payment_intent_id), "1")

    async def finalize(self, order: Order) -> bool:
        psid = order.payment_intent_id
        args = []
        for field, value in order.to_mapping().items():
            args.extend((field, value))
        created = await self._finalize(
            keys=[k_processed(psid), k_order(psid)], args=args
        )
        return bool(created)

    async def close(self) -> None:
        await self.r.close()
