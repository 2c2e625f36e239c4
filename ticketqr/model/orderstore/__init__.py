from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine
import redis.asyncio as redis

from ._base import OrderStore

BACKENDS = ("memory", "redis", "pg")


# Factory keeps server.py simple and constructor-agnostic:
def new_store(backend: str, *,
              r: Optional[redis.Redis] = None,
              engine: Optional[AsyncEngine] = None,
              max_concurrency: int = 10) -> OrderStore:
    if backend == "pg":
        if engine is None:
            raise RuntimeError("OrderStore(pg) requires engine=AsyncEngine")
        from ._postgres import OrderStore as _PgOrderStore
        return _PgOrderStore(engine=engine, max_concurrency=max_concurrency)
    if backend == "redis":
        if r is None:
            raise RuntimeError("OrderStore(redis) requires r=redis.Redis")
        from ._redis import OrderStore as _RedisOrderStore
        return _RedisOrderStore(r=r)
    if backend == "memory":
        from ._memory import OrderStore as _MemoryOrderStore
        return _MemoryOrderStore()
    raise RuntimeError(f"unknown order store backend: {backend}")


__all__ = ["OrderStore", "new_store", "BACKENDS"]
