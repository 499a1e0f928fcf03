"""User-visible error state of a studio session."""

from dataclasses import dataclass


@dataclass
class StudioNotices:
    """Messages a front end shows next to the matching section."""

    idea_error: str = ""
    timeline_error: str = ""
    rate_limit_error: str = ""
    daily_quota_error: str = ""

    def clear_rate_limit(self) -> None:
        self.rate_limit_error = ""
