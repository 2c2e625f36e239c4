from abc import ABC, abstractmethod
from typing import Optional

from ..order import Order


class OrderStore(ABC):
    """Reconciliation state keyed by payment-intent id.

    Two facts live here: whether an intent has been finalized (the
    processed marker) and the Order it produced. `finalize()` writes both
    at once; the other four operations touch one fact each and leave the
    sequencing to the caller.
    """

    @abstractmethod
    async def save(self, order: Order) -> None: ...

    @abstractmethod
    async def get(self, payment_intent_id: str) -> Optional[Order]: ...

    @abstractmethod
    async def is_processed(self, payment_intent_id: str) -> bool: ...

    @abstractmethod
    async def mark_processed(self, payment_intent_id: str) -> None: ...

    # True if this call marked the intent and stored the order,
    # False if the intent was already processed (nothing written)
    @abstractmethod
    async def finalize(self, order: Order) -> bool: ...

    async def close(self) -> None:
        return None
