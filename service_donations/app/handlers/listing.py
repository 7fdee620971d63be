"""
Read-only inspection of the donation queue.
"""

from typing import Any, Dict, Optional

from shared.config import BaseConfig
from shared.errors import MissingGameIdError

from ..models import DonationStatus
from ..state import DonationState


def parse_limit(raw: Optional[str], default: int = 50, cap: int = 100) -> int:
    """Non-numeric or non-positive limits fall back to ``default``."""
    try:
        limit = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        limit = default
    if limit <= 0:
        limit = default
    return min(limit, cap)


class ListHandler:

    def __init__(self, state: DonationState, config: BaseConfig):
        self.state = state
        self.config = config

    def handle(self, game_id: Optional[str], status: Optional[str] = None,
               limit: Optional[str] = None) -> Dict[str, Any]:
        if not game_id:
            raise MissingGameIdError()

        donations, queue_size = self.state.snapshot(
            DonationStatus.parse(status),
            parse_limit(limit, self.config.list_default_limit, self.config.list_max_limit),
        )
        listed = [donation.to_listing() for donation in donations]

        return {
            "status": "ok",
            "donations": listed,
            "total": len(listed),
            "queue_size": queue_size,
        }
