from typing import Any, Dict, List, Optional


class TicketQRError(Exception):
    """Base exception for all errors raised inside ticketqr.

    `status_code` and `to_dict()` are what the HTTP layer sends back.
    """

    status_code = 500

    def to_dict(self) -> Dict[str, Any]:
        return {"error": str(self)}


class ConfigError(TicketQRError):
    """Raised at startup when a required setting is missing or invalid."""


class ValidationError(TicketQRError):
    """Client input is malformed. Carries per-field messages."""

    status_code = 400

    def __init__(self, details: Optional[List[Dict[str, str]]] = None):
        self.details = details or []
        super().__init__("Validation failed")

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])

    def to_dict(self) -> Dict[str, Any]:
        return {"error": str(self), "details": self.details}


class AuthenticationError(TicketQRError):
    """Webhook signature is missing or does not verify."""

    status_code = 400


class PaymentServiceError(TicketQRError):
    """The payment processor call failed."""

    status_code = 500

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "Payment service error", "message": str(self)}


class RenderError(TicketQRError):
    """QR image generation failed."""

    status_code = 500
