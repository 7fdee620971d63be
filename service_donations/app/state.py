"""
Process state owned by one donations service instance.
"""

import threading
from typing import Any, Dict, List, Optional, Tuple

from shared.config import BaseConfig
from shared.errors import DonorFrequencyError, DuplicateDonationError
from shared.logging import get_logger

from .clock import Clock
from .dedupe import DedupeTracker
from .models import Donation, DonationStatus
from .queue import DonationQueue
from .ratelimit import SlidingWindowRateLimiter


class DonationState:
    """Queue, rate tables and dedupe tables behind one lock.

    Every public method is a complete check-then-act step: nothing inside
    suspends, so two interleaved requests can never both pass a check before
    either records its effect.
    """

    def __init__(self, config: BaseConfig, clock: Optional[Clock] = None):
        self.config = config
        self.clock = clock or Clock()
        self.logger = get_logger("donations.state")
        self._lock = threading.Lock()

        self.queue = DonationQueue(self.clock)
        self.dedupe = DedupeTracker(
            horizon_ms=config.dedupe_horizon_ms,
            min_donor_interval_ms=config.min_donor_interval_seconds * 1000,
            clock=self.clock,
        )
        self.webhook_limiter = SlidingWindowRateLimiter(
            "webhook", window_ms=60_000, max_requests=config.webhook_rate_limit_per_minute, clock=self.clock
        )
        self.poll_limiter = SlidingWindowRateLimiter(
            "poll", window_ms=1_000, max_requests=config.poll_rate_limit_per_second, clock=self.clock
        )

    def _sweep_locked(self) -> Dict[str, int]:
        # Queue deadlines only. Seen ids expire lazily in is_seen, so the
        # dedupe tables are swept on ingestion and by the background task.
        return {
            "expired": self.queue.expire_older_than(self.config.queue_expiry_ms),
            "removed": self.queue.sweep(),
        }

    def sweep(self) -> Dict[str, int]:
        """Apply every pending deadline, including idle rate-limit keys."""
        with self._lock:
            result = self._sweep_locked()
            result["dedupe"] = self.dedupe.sweep()
            result["rate_limit_keys"] = self.webhook_limiter.evict_stale() + self.poll_limiter.evict_stale()
        return result

    def allow_webhook(self, source: str) -> bool:
        with self._lock:
            return self.webhook_limiter.allow(source)

    def allow_poll(self, game_id: str) -> bool:
        with self._lock:
            return self.poll_limiter.allow(game_id)

    def admit(self, donation_id: str, donor_name: str, amount, donor_email: str,
              message: str, source: str) -> Tuple[Donation, int]:
        """Queue a validated donation; returns it with its queue position.

        Raises ``DuplicateDonationError`` or ``DonorFrequencyError`` without
        touching any table.
        """
        with self._lock:
            if self.dedupe.is_seen(donation_id):
                raise DuplicateDonationError(donation_id)
            if not self.dedupe.check_donor(donor_email):
                raise DonorFrequencyError(self.config.min_donor_interval_seconds)

            now = self.clock.now_ms()
            donation = Donation(
                id=donation_id,
                donor_name=donor_name,
                amount=amount,
                message=message,
                timestamp=now,
                source_identifier=source,
                remove_at=now + self.config.queue_expiry_ms,
            )

            self._sweep_locked()
            self.dedupe.sweep()
            position = self.queue.append(donation)
            self.dedupe.mark_seen(donation_id)
            self.dedupe.record_donor(donor_email)
            return donation, position

    def take_next(self) -> Tuple[Optional[Donation], int]:
        """Claim the earliest pending donation.

        Returns the donation (or None) and the queue size reported to the
        game: the physical length minus the claimed record.
        """
        with self._lock:
            self._sweep_locked()
            donation = self.queue.next_unprocessed()
            if donation is None:
                return None, len(self.queue)

            self.queue.mark_processed(donation)
            self.queue.schedule_removal(donation, self.config.display_buffer_ms)
            return donation, len(self.queue) - 1

    def snapshot(self, status: DonationStatus, limit: int) -> Tuple[List[Donation], int]:
        with self._lock:
            self._sweep_locked()
            return self.queue.filter_by_status(status, limit), len(self.queue)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "queue": self.queue.counts(),
                "dedupe": self.dedupe.get_stats(),
                "rate_limits": [self.webhook_limiter.get_stats(), self.poll_limiter.get_stats()],
            }
