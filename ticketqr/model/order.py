from __future__ import annotations
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict


class OrderStatus(str, Enum):
    # only VALID is issued today; USED / CANCELLED are reserved for scanning
    # and refunds
    VALID = "valid"
    USED = "used"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Order:
    payment_intent_id: str
    qr_token: str
    status: OrderStatus
    created_at: float
    female_qty: int
    male_qty: int

    def to_mapping(self) -> Dict[str, str]:
        # flat string mapping, as stored in a redis hash
        m = asdict(self)
        m["status"] = self.status.value
        return {k: str(v) for k, v in m.items()}

    @classmethod
    def from_mapping(cls, m: Dict[str, Any]) -> "Order":
        return cls(
            payment_intent_id=m["payment_intent_id"],
            qr_token=m["qr_token"],
            status=OrderStatus(m["status"]),
            created_at=float(m["created_at"]),
            female_qty=int(m["female_qty"]),
            male_qty=int(m["male_qty"]),
        )
