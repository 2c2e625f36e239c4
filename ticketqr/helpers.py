import time
from datetime import datetime, timezone
import hmac
from typing import Optional

PAYMENT_INTENT_PREFIX = "pi_"


# ----------------------------
# Helpers
# ----------------------------
def now_ts() -> float:
    return time.time()


def to_iso(ts: float | None) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def is_payment_intent_id(value: Optional[str]) -> bool:
    # surface check only; the processor owns the real format
    return bool(value) and value.startswith(PAYMENT_INTENT_PREFIX)


def token_preview(token: str) -> str:
    return f"{token[:8]}..."


def ct_equal(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode(), b.encode())
