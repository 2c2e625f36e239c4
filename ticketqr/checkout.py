import logging
from typing import Any, Dict

from starlette.concurrency import run_in_threadpool

from .errors import ValidationError
from .payments import PaymentAdapter
from .pricing import CURRENCY, calculate_pricing, to_minor_units

logger = logging.getLogger(__name__)


async def create_payment_intent(
    adapter: PaymentAdapter,
    female_qty: int,
    male_qty: int,
    language: str,
) -> Dict[str, Any]:
    if female_qty <= 0 and male_qty <= 0:
        raise ValidationError.for_field(
            "quantities", "At least one ticket must be selected"
        )

    pricing = calculate_pricing(female_qty, male_qty)
    amount = to_minor_units(pricing.total)
    logger.info(
        "creating payment intent: %d female, %d male, total %s %s",
        female_qty, male_qty, pricing.total, CURRENCY.upper(),
    )

    # metadata travels with the intent and comes back on the webhook
    intent = await run_in_threadpool(
        adapter.create_intent,
        amount,
        CURRENCY,
        {
            "female_qty": str(female_qty),
            "male_qty": str(male_qty),
            "subtotal": str(pricing.subtotal),
            "fee": str(pricing.fee),
            "language": language,
        },
    )
    logger.info("payment intent created: %s", intent["payment_intent_id"])

    return {
        "client_secret": intent["client_secret"],
        "payment_intent_id": intent["payment_intent_id"],
        "pricing": pricing.as_dict(),
    }
