from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

# CAD per ticket
TICKET_PRICES = {"female": Decimal("1.00"), "male": Decimal("2.00")}
FEE_RATE = Decimal("0.08")
CURRENCY = "cad"

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class Pricing:
    subtotal: Decimal
    fee: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "fee": float(self.fee),
            "total": float(self.total),
        }


def calculate_pricing(female_qty: int, male_qty: int) -> Pricing:
    subtotal = (
        female_qty * TICKET_PRICES["female"]
        + male_qty * TICKET_PRICES["male"]
    )
    fee = (subtotal * FEE_RATE).quantize(_CENT, rounding=ROUND_HALF_UP)
    return Pricing(subtotal=subtotal, fee=fee, total=subtotal + fee)


def to_minor_units(amount: Decimal) -> int:
    """Dollars -> cents, the integer amount the processor expects."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
