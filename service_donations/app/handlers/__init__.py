"""
Request handlers for the donation endpoints.

- ingestion: webhook receiver (writer)
- poll: game client polling (reader + mutator)
- listing: read-only inspection
"""

from .ingestion import IngestionHandler, WebhookDonation
from .listing import ListHandler, parse_limit
from .poll import PollHandler, is_valid_game_id

__all__ = [
    "IngestionHandler",
    "WebhookDonation",
    "ListHandler",
    "parse_limit",
    "PollHandler",
    "is_valid_game_id",
]
