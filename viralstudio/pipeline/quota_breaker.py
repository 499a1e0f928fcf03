"""One-shot breaker for daily image quota exhaustion."""

import logging
from typing import Optional

from viralstudio.errors import DAILY_QUOTA_MESSAGE, ErrorKind, matches_daily_quota

logger = logging.getLogger(__name__)


class DailyQuotaBreaker:
    """Latch permanently once the provider reports its per-day quota is spent.

    A per-minute limiter is pointless after the daily ceiling is hit, so once
    latched every later batch is refused for the rest of the session.
    """

    def __init__(self, message: str = DAILY_QUOTA_MESSAGE):
        self._latched_message = message
        self._latched = False
        self.trigger: Optional[str] = None

    @property
    def is_latched(self) -> bool:
        return self._latched

    @property
    def message(self) -> Optional[str]:
        return self._latched_message if self._latched else None

    def inspect(self, error_message: Optional[str], kind: Optional[ErrorKind] = None) -> bool:
        """
        Feed a failure to the breaker.

        Structured kinds win; the string signature is the fallback for
        providers that only hand back text.

        Returns:
            True if this call latched the breaker (first match only)
        """
        if self._latched:
            return False
        if kind != ErrorKind.DAILY_QUOTA and not matches_daily_quota(error_message):
            return False

        self._latched = True
        self.trigger = error_message
        logger.error(f"Daily image quota exhausted, blocking further batches: {error_message}")
        return True
