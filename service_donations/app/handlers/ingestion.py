"""
Webhook ingestion: validates a donation platform delivery and queues it.
"""

import json
import math
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, ValidationError, ValidationInfo, field_validator

from shared.config import BaseConfig
from shared.errors import DonationBridgeException, InvalidDataError, InvalidPayloadError, RateLimitError
from shared.logging import get_logger
from shared.observability import ObservabilityManager
from shared.tracing import trace_function

from ..state import DonationState


class WebhookDonation(BaseModel):
    """Fields read from a webhook delivery. Anything else is ignored."""

    model_config = ConfigDict(extra="ignore")

    id: Union[StrictStr, StrictInt]
    amount: Union[StrictInt, StrictFloat]
    donor_name: StrictStr
    donor_email: StrictStr
    message: Optional[Any] = None

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, value):
        donation_id = str(value)
        if not donation_id.strip():
            raise ValueError("id must not be empty")
        return donation_id

    @field_validator("donor_name", "donor_email")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("amount")
    @classmethod
    def amount_in_range(cls, value, info: ValidationInfo):
        ceiling = (info.context or {}).get("max_amount", 999_999_999)
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("amount must be finite")
        if value <= 0:
            raise ValueError("amount must be positive")
        if value > ceiling:
            raise ValueError("amount exceeds ceiling")
        return value


class IngestionHandler:
    """Admits webhook deliveries into the donation queue."""

    def __init__(self, state: DonationState, config: BaseConfig, observability: ObservabilityManager):
        self.state = state
        self.config = config
        self.observability = observability
        self.metrics = observability.metrics
        self.logger = get_logger("donations.ingestion")

    def parse_body(self, raw: bytes) -> Dict[str, Any]:
        """Decode the request body into a JSON object."""
        try:
            payload = json.loads(raw) if raw else None
        except (UnicodeDecodeError, ValueError):
            payload = None
        if not isinstance(payload, dict):
            raise InvalidPayloadError()
        return payload

    def validate(self, payload: Dict[str, Any]) -> WebhookDonation:
        try:
            return WebhookDonation.model_validate(payload, context={"max_amount": self.config.max_amount})
        except ValidationError as exc:
            fields = sorted({str(error["loc"][0]) for error in exc.errors() if error.get("loc")})
            self.logger.info("Donation payload rejected", invalid_fields=fields)
            raise InvalidDataError() from exc

    def check_rate_limit(self, source: str) -> None:
        if not self.state.allow_webhook(source):
            self.metrics.increment_counter("rate_limit_hits_total", limiter="webhook")
            raise RateLimitError()

    @trace_function("donations.webhook")
    def handle(self, raw_body: bytes, source: str) -> Dict[str, Any]:
        """Run the full pipeline for one delivery.

        Order: rate limit, payload shape, field validation, duplicate id,
        donor cooldown. The first failure short-circuits.
        """
        try:
            self.check_rate_limit(source)
            payload = self.parse_body(raw_body)
            data = self.validate(payload)

            message = data.message if isinstance(data.message, str) and data.message else self.config.default_message
            donation, position = self.state.admit(
                donation_id=data.id,
                donor_name=data.donor_name,
                amount=data.amount,
                donor_email=data.donor_email,
                message=message,
                source=source,
            )
        except DonationBridgeException as exc:
            self.metrics.increment_counter("donations_rejected_total", code=exc.code)
            raise

        self.metrics.increment_counter("donations_received_total")
        self.metrics.set_gauge("donation_queue_size", len(self.state.queue))
        self.logger.info(
            "Donation received",
            source=source,
            donor_name=donation.donor_name,
            amount=donation.amount,
            donation_id=donation.id
        )
        self.observability.log_business_event(
            "donation_received",
            donation_id=donation.id,
            amount=donation.amount,
            queue_position=position
        )

        return {
            "status": "success",
            "message": "Donation received",
            "donation_id": donation.id,
            "queue_position": position,
        }
