"""
Shared error handling for the Donation Bridge.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    status: str = "error"
    message: str
    code: str
    trace_id: Optional[str] = None
    details: Dict[str, Any] = {}

    def to_body(self) -> Dict[str, Any]:
        """Flatten into the wire format consumed by webhook and game clients."""
        body: Dict[str, Any] = {
            "status": self.status,
            "message": self.message,
            "code": self.code,
        }
        body.update(self.details)
        if self.trace_id:
            body["trace_id"] = self.trace_id
        return body


class DonationBridgeException(Exception):
    """Base exception for Donation Bridge services."""

    status_code = 400
    status = "error"

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            status=self.status,
            message=self.message,
            code=self.code,
            trace_id=trace_id,
            details=self.details
        )


class RateLimitError(DonationBridgeException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__("RATE_LIMIT_EXCEEDED", message, details)


class InvalidPayloadError(DonationBridgeException):
    """Webhook body is not a JSON object."""

    def __init__(self, message: str = "Invalid JSON payload", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_PAYLOAD", message, details)


class InvalidDataError(DonationBridgeException):
    """Webhook body is missing fields or carries malformed values."""

    def __init__(self, message: str = "Invalid donation data", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_DATA", message, details)


class DuplicateDonationError(DonationBridgeException):
    """Donation id already admitted inside the dedupe horizon."""

    status = "warning"

    def __init__(self, donation_id: str, message: str = "Donation already processed"):
        super().__init__("DUPLICATE_DONATION", message, {"donation_id": donation_id})


class DonorFrequencyError(DonationBridgeException):
    """Donor is still inside the cooldown window."""

    def __init__(self, min_interval_seconds: int, message: str = "Donation too frequent from this donor"):
        super().__init__("DONOR_FREQUENCY_LIMIT", message, {"min_interval_seconds": min_interval_seconds})


class InvalidGameIdError(DonationBridgeException):
    """Game id does not match the expected format."""

    def __init__(self, message: str = "Invalid game ID format", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_GAME_ID", message, details)


class MissingGameIdError(DonationBridgeException):
    """Game id query parameter absent."""

    def __init__(self, message: str = "Missing game_id parameter", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISSING_GAME_ID", message, details)


class InternalError(DonationBridgeException):
    """Unexpected fault; carries no detail for the caller."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__("INTERNAL_ERROR", message)
