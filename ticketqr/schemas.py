from typing import Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # the browser client speaks camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateIntentRequest(CamelModel):
    female_qty: int = Field(ge=0, strict=True)
    male_qty: int = Field(ge=0, strict=True)
    language: Literal["en", "es", "pt-BR"] = "en"


class PricingResponse(BaseModel):
    subtotal: float
    fee: float
    total: float


class CreateIntentResponse(CamelModel):
    client_secret: str
    payment_intent_id: str
    pricing: PricingResponse


class OrderQRResponse(CamelModel):
    status: Literal["pending", "ready"]
    qr_token: str | None = None
    qr_image_data_url: str | None = None


class WebhookAck(BaseModel):
    received: bool = True


class HealthResponse(BaseModel):
    status: str
    timestamp: str
