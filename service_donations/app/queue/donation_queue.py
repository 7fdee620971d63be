"""
In-memory donation queue.
"""

from typing import Any, Dict, List, Optional

from shared.logging import get_logger

from ..clock import Clock
from ..models import Donation, DonationStatus


class AlreadyProcessedError(RuntimeError):
    """Raised when a donation is marked processed a second time."""


class DonationQueue:
    """Insertion-ordered donation records with deadline-based removal.

    Records are never deleted by timers. Each one carries a ``remove_at``
    deadline and ``sweep()`` drops the ones whose deadline has passed;
    callers sweep on every access.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or Clock()
        self.logger = get_logger("donations.queue")
        self._items: List[Donation] = []
        self.stats = {
            "total_appended": 0,
            "total_processed": 0,
            "total_expired": 0,
            "total_removed": 0,
        }

    def __len__(self) -> int:
        return len(self._items)

    def append(self, donation: Donation) -> int:
        """Add to the end of the queue and return the new length."""
        self._items.append(donation)
        self.stats["total_appended"] += 1
        return len(self._items)

    def next_unprocessed(self) -> Optional[Donation]:
        for donation in self._items:
            if not donation.processed:
                return donation
        return None

    def mark_processed(self, donation: Donation) -> Donation:
        if donation.processed:
            raise AlreadyProcessedError(f"Donation {donation.id} already processed")
        donation.processed = True
        donation.processed_time = self.clock.now_ms()
        self.stats["total_processed"] += 1
        return donation

    def schedule_removal(self, donation: Donation, delay_ms: int) -> float:
        """Set the removal deadline ``delay_ms`` from now, never later than an existing one."""
        deadline = self.clock.now_ms() + delay_ms
        if donation.remove_at is None or deadline < donation.remove_at:
            donation.remove_at = deadline
        return donation.remove_at

    def remove_by_id(self, donation_id: str) -> bool:
        for index, donation in enumerate(self._items):
            if donation.id == donation_id:
                del self._items[index]
                self.stats["total_removed"] += 1
                return True
        return False

    def expire_older_than(self, max_age_ms: int) -> int:
        """Drop every record created before ``now - max_age_ms``, processed or not."""
        cutoff = self.clock.now_ms() - max_age_ms
        kept = [d for d in self._items if d.timestamp > cutoff]
        expired = len(self._items) - len(kept)
        if expired:
            self._items = kept
            self.stats["total_expired"] += expired
            self.logger.info("Expired stale donations", expired=expired, remaining=len(kept))
        return expired

    def sweep(self) -> int:
        """Drop records whose removal deadline has passed."""
        now = self.clock.now_ms()
        kept = [d for d in self._items if d.remove_at is None or d.remove_at > now]
        removed = len(self._items) - len(kept)
        if removed:
            self._items = kept
            self.stats["total_removed"] += removed
            self.logger.debug("Removed displayed donations", removed=removed, remaining=len(kept))
        return removed

    def position_of(self, donation_id: str) -> Optional[int]:
        """1-based position of a record, or None when absent."""
        for index, donation in enumerate(self._items):
            if donation.id == donation_id:
                return index + 1
        return None

    def filter_by_status(self, status: DonationStatus, limit: int) -> List[Donation]:
        if status is DonationStatus.PENDING:
            matches = [d for d in self._items if not d.processed]
        elif status is DonationStatus.PROCESSED:
            matches = [d for d in self._items if d.processed]
        else:
            matches = list(self._items)
        return matches[:max(limit, 0)]

    def counts(self) -> Dict[str, Any]:
        pending = sum(1 for d in self._items if not d.processed)
        return {
            "size": len(self._items),
            "pending": pending,
            "processed": len(self._items) - pending,
            **self.stats,
        }
