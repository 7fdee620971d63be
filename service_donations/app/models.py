"""
Donation records and their wire projections.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class DonationStatus(str, Enum):
    """Listing filters."""
    ALL = "all"
    PENDING = "pending"
    PROCESSED = "processed"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DonationStatus":
        """Unknown or missing filters mean ``all``."""
        try:
            return cls((value or cls.ALL.value).strip().lower())
        except ValueError:
            return cls.ALL


@dataclass(eq=False)
class Donation:
    """A single donation moving through pending -> processed -> removed."""
    id: str
    donor_name: str
    amount: Union[int, float]
    message: str
    timestamp: float
    source_identifier: str = field(default="unknown", repr=False)
    processed: bool = False
    processed_time: Optional[float] = None
    remove_at: Optional[float] = None

    @property
    def status_label(self) -> str:
        return "displayed" if self.processed else "pending"

    def to_display(self, display_time_ms: int) -> Dict[str, Any]:
        """Format handed to the game client for on-screen display."""
        return {
            "id": self.id,
            "donor_name": self.donor_name,
            "amount": self.amount,
            "message": self.message,
            "timestamp": int(self.timestamp),
            "display_time": display_time_ms,
        }

    def to_listing(self) -> Dict[str, Any]:
        """Format returned by the inspection endpoint."""
        return {
            "id": self.id,
            "donor_name": self.donor_name,
            "amount": self.amount,
            "message": self.message,
            "timestamp": int(self.timestamp),
            "status": self.status_label,
        }
