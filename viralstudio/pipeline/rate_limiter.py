"""Sliding-window rate limiter for scene image requests."""

import logging
import math
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admission:
    """Decision for one batch."""

    allowed: bool
    wait_seconds: int = 0


class SlidingWindowRateLimiter:
    """Admit batches of requests against a fixed quota per trailing window.

    Every dispatched request leaves one timestamp behind. An admitted batch
    consumes its full size at once, all entries sharing the admission time,
    so a batch is never partially throttled.
    """

    def __init__(self, quota: int = 25, window_seconds: float = 60.0):
        if quota <= 0:
            raise ValueError("quota must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.quota = quota
        self.window_seconds = window_seconds
        self._timestamps: list[float] = []

    def _prune(self, now: float) -> None:
        self._timestamps = [
            ts for ts in self._timestamps if now - ts < self.window_seconds
        ]

    def admit(self, batch_size: int, now: float) -> Admission:
        """
        Check whether a batch of batch_size requests may be dispatched at now.

        On admission the batch is recorded. A denied check only prunes
        expired entries, so repeating it never double-counts.

        Returns:
            Admission with the wait (whole seconds) until the oldest
            in-window entry expires when denied.
        """
        if batch_size < 0:
            raise ValueError("batch_size must not be negative")

        self._prune(now)

        if len(self._timestamps) + batch_size > self.quota:
            oldest = self._timestamps[0] if self._timestamps else now
            wait = math.ceil(self.window_seconds - (now - oldest))
            logger.warning(
                f"Rate limit: {len(self._timestamps)} in window, "
                f"batch of {batch_size} denied, wait {wait}s"
            )
            return Admission(allowed=False, wait_seconds=max(wait, 1))

        self._timestamps.extend([now] * batch_size)
        return Admission(allowed=True)

    def current_count(self, now: float) -> int:
        """Number of requests still counting against the quota at now."""
        return sum(1 for ts in self._timestamps if now - ts < self.window_seconds)

    def remaining(self, now: float) -> int:
        return max(self.quota - self.current_count(now), 0)

    def can_ever_admit(self, batch_size: int) -> bool:
        return batch_size <= self.quota

    @property
    def oldest(self) -> Optional[float]:
        return self._timestamps[0] if self._timestamps else None

    def reset(self) -> None:
        self._timestamps.clear()
