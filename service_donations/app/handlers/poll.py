"""
Game client polling: hands out the next pending donation for display.
"""

from typing import Any, Dict, Optional

from shared.config import BaseConfig
from shared.errors import InvalidGameIdError, RateLimitError
from shared.logging import get_logger
from shared.observability import ObservabilityManager
from shared.tracing import trace_function

from ..state import DonationState


def is_valid_game_id(game_id: Optional[str], prefix: str = "roblox_", min_suffix: int = 5) -> bool:
    """``roblox_`` followed by at least ``min_suffix`` characters."""
    if not game_id or not isinstance(game_id, str):
        return False
    if not game_id.startswith(prefix):
        return False
    return len(game_id) >= len(prefix) + min_suffix


class PollHandler:
    """Pops the earliest pending donation; a record is served at most once."""

    def __init__(self, state: DonationState, config: BaseConfig, observability: ObservabilityManager):
        self.state = state
        self.config = config
        self.observability = observability
        self.metrics = observability.metrics
        self.logger = get_logger("donations.poll")

    @trace_function("donations.poll")
    def handle(self, game_id: Optional[str]) -> Dict[str, Any]:
        if not is_valid_game_id(game_id, self.config.game_id_prefix, self.config.game_id_min_suffix):
            raise InvalidGameIdError()

        if not self.state.allow_poll(game_id):
            self.metrics.increment_counter("rate_limit_hits_total", limiter="poll")
            raise RateLimitError("Too many requests")

        donation, queue_size = self.state.take_next()
        self.metrics.set_gauge("donation_queue_size", len(self.state.queue))

        if donation is None:
            return {
                "status": "ok",
                "has_donation": False,
                "message": "No donations at the moment",
                "queue_size": queue_size,
            }

        self.metrics.increment_counter("donations_served_total")
        self.observability.log_business_event(
            "donation_served",
            donation_id=donation.id,
            game_id=game_id,
            wait_ms=int(donation.processed_time - donation.timestamp)
        )

        return {
            "status": "ok",
            "has_donation": True,
            "donation": donation.to_display(self.config.display_time_ms),
            "queue_size": queue_size,
        }
