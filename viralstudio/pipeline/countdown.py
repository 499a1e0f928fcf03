"""Visible countdown shown while the rate limiter is throttling."""

import logging
import math
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Countdown:
    """Deadline for the throttling message.

    Nothing ticks in the background: the time left is derived from the clock
    whenever it is read, and the first read at or past the deadline calls
    on_expire. Expiry only clears the displayed message; nothing is retried.
    """

    def __init__(
        self,
        on_expire: Callable[[], None],
        clock: Callable[[], float] = time.monotonic,
    ):
        self._on_expire = on_expire
        self._clock = clock
        self._deadline: Optional[float] = None

    def start(self, seconds: int) -> None:
        """Restart the countdown from now."""
        self._deadline = self._clock() + max(int(seconds), 0)
        self.refresh()

    def refresh(self) -> int:
        """Return the whole seconds left, expiring the countdown when none are."""
        if self._deadline is None:
            return 0
        left = math.ceil(self._deadline - self._clock())
        if left > 0:
            return left

        self._deadline = None
        logger.debug("Rate limit countdown finished")
        self._on_expire()
        return 0

    @property
    def remaining(self) -> int:
        return self.refresh()

    @property
    def running(self) -> bool:
        return self.remaining > 0

    def cancel(self) -> None:
        self._deadline = None
