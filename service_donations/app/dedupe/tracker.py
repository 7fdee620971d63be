"""
Duplicate and donor-frequency guards for incoming donations.
"""

from typing import Any, Dict, Optional

from shared.logging import get_logger

from ..clock import Clock


def normalize_donor_key(donor: str) -> str:
    """Cooldown key for a donor identifier such as an email address."""
    return donor.strip().casefold()


class DedupeTracker:
    """Seen-id set plus per-donor cooldown, both expiring on a timer.

    Seen ids are remembered for ``horizon_ms`` after admission; once evicted
    the same id is treated as new. The donor cooldown only tracks the most
    recent accepted donation per donor.
    """

    def __init__(self, horizon_ms: int = 3_600_000, min_donor_interval_ms: int = 10_000,
                 clock: Optional[Clock] = None):
        self.horizon_ms = horizon_ms
        self.min_donor_interval_ms = min_donor_interval_ms
        self.clock = clock or Clock()
        self.logger = get_logger("donations.dedupe")

        # donation id -> expiry (epoch ms)
        self._seen: Dict[str, float] = {}
        # normalized donor key -> last accepted (epoch ms)
        self._last_accepted: Dict[str, float] = {}

    def is_seen(self, donation_id: str) -> bool:
        expires_at = self._seen.get(donation_id)
        if expires_at is None:
            return False
        if expires_at <= self.clock.now_ms():
            del self._seen[donation_id]
            return False
        return True

    def mark_seen(self, donation_id: str) -> None:
        self._seen[donation_id] = self.clock.now_ms() + self.horizon_ms

    def check_donor(self, donor: str) -> bool:
        """True when the donor is outside the cooldown window."""
        last = self._last_accepted.get(normalize_donor_key(donor))
        if last is None:
            return True
        return self.clock.now_ms() - last >= self.min_donor_interval_ms

    def record_donor(self, donor: str) -> None:
        self._last_accepted[normalize_donor_key(donor)] = self.clock.now_ms()

    def sweep(self) -> int:
        """Evict expired ids and donors whose cooldown has elapsed."""
        now = self.clock.now_ms()

        expired_ids = [key for key, expires_at in self._seen.items() if expires_at <= now]
        for key in expired_ids:
            del self._seen[key]

        idle_donors = [
            key for key, last in self._last_accepted.items()
            if now - last >= self.min_donor_interval_ms
        ]
        for key in idle_donors:
            del self._last_accepted[key]

        evicted = len(expired_ids) + len(idle_donors)
        if evicted:
            self.logger.debug(
                "Dedupe tables swept",
                expired_ids=len(expired_ids),
                idle_donors=len(idle_donors)
            )
        return evicted

    def get_stats(self) -> Dict[str, Any]:
        return {
            "seen_ids": len(self._seen),
            "cooling_donors": len(self._last_accepted),
            "horizon_ms": self.horizon_ms,
            "min_donor_interval_ms": self.min_donor_interval_ms,
        }
