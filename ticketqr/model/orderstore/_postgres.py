from __future__ import annotations
import asyncio
from typing import Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncConnection

from ...helpers import now_ts
from ..order import Order
from ._base import OrderStore as _OrderStore


# ------------------------------------------------------------------------------
# DDL (idempotent); runs on PostgreSQL and SQLite
# ------------------------------------------------------------------------------
SQL_CREATE_ORDERS = r"""
CREATE TABLE IF NOT EXISTS orders (
  payment_intent_id TEXT PRIMARY KEY,
  qr_token          TEXT NOT NULL,
  status            TEXT NOT NULL,
  created_at        DOUBLE PRECISION NOT NULL,
  female_qty        INTEGER NOT NULL,
  male_qty          INTEGER NOT NULL
);
"""

SQL_CREATE_PROCESSED = r"""
-- processed marker: one row per payment intent that has been finalized
CREATE TABLE IF NOT EXISTS processed_payment_intents (
  payment_intent_id TEXT PRIMARY KEY,
  created_at        DOUBLE PRECISION NOT NULL
);
"""

SQL_MARK = r"""
INSERT INTO processed_payment_intents(payment_intent_id, created_at)
VALUES (:psid, :created_at)
ON CONFLICT (payment_intent_id) DO NOTHING
RETURNING payment_intent_id
"""

SQL_UPSERT_ORDER = r"""
INSERT INTO orders(
  payment_intent_id, qr_token, status, created_at, female_qty, male_qty
) VALUES (
  :payment_intent_id, :qr_token, :status, :created_at, :female_qty, :male_qty
)
ON CONFLICT (payment_intent_id) DO UPDATE SET
  qr_token=EXCLUDED.qr_token, status=EXCLUDED.status,
  created_at=EXCLUDED.created_at, female_qty=EXCLUDED.female_qty,
  male_qty=EXCLUDED.male_qty
"""


async def create_schema(conn: AsyncConnection):
    await conn.execute(text(SQL_CREATE_ORDERS))
    await conn.execute(text(SQL_CREATE_PROCESSED))


def _params(order: Order) -> dict:
    return {
        "payment_intent_id": order.payment_intent_id,
        "qr_token": order.qr_token,
        "status": order.status.value,
        "created_at": order.created_at,
        "female_qty": order.female_qty,
        "male_qty": order.male_qty,
    }


class OrderStore(_OrderStore):
    """Orders and processed markers in two tables.

    At most `max_concurrency` calls touch the database at once; the rest
    wait on the semaphore rather than on the connection pool.
    """

    def __init__(
            self, *, engine: AsyncEngine, max_concurrency: int = 10
    ) -> None:
        self.engine = engine
        self._gate = asyncio.Semaphore(max(1, max_concurrency))

    async def save(self, order: Order) -> None:
        async with self._gate:
            async with self.engine.begin() as conn:
                await conn.execute(text(SQL_UPSERT_ORDER), _params(order))

    async def get(self, payment_intent_id: str) -> Optional[Order]:
        async with self._gate:
            async with self.engine.connect() as conn:
                row = (await conn.execute(text("""
                  SELECT payment_intent_id, qr_token, status, created_at,
                         female_qty, male_qty
                  FROM orders WHERE payment_intent_id = :psid
                """), {"psid": payment_intent_id})).mappings().first()
        return Order.from_mapping(row) if row else None

    async def is_processed(self, payment_intent_id: str) -> bool:
        async with self._gate:
            async with self.engine.connect() as conn:
                row = (await conn.execute(text("""
                  SELECT 1 FROM processed_payment_intents
                  WHERE payment_intent_id = :psid
                """), {"psid": payment_intent_id})).first()
        return row is not None

    async def mark_processed(self, payment_intent_id: str) -> None:
        async with self._gate:
            async with self.engine.begin() as conn:
                await conn.execute(
                    text(SQL_MARK),
                    {"psid": payment_intent_id, "created_at": now_ts()},
                )

    async def finalize(self, order: Order) -> bool:
        # marker + order in one transaction: a crash leaves neither
        async with self._gate:
            async with self.engine.begin() as conn:
                marked = (await conn.execute(text(SQL_MARK), {
                    "psid": order.payment_intent_id,
                    "created_at": order.created_at,
                })).first()
                if marked is None:
                    return False
                await conn.execute(text(SQL_UPSERT_ORDER), _params(order))
        return True

    async def close(self) -> None:
        await self.engine.dispose()
