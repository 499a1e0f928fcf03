"""Aggregate predicates over a timeline, gating the dependent actions."""

from dataclasses import dataclass
from typing import Sequence

from viralstudio.models.schemas import TimelineItem


def has_failures(timeline: Sequence[TimelineItem]) -> bool:
    return any(item.has_failed for item in timeline)


def is_busy(timeline: Sequence[TimelineItem]) -> bool:
    return any(item.is_generating for item in timeline)


def is_complete(timeline: Sequence[TimelineItem]) -> bool:
    return len(timeline) > 0 and all(item.image_url for item in timeline)


def pending_indices(timeline: Sequence[TimelineItem]) -> list[int]:
    """Scenes with no image and no request in flight."""
    return [i for i, item in enumerate(timeline) if item.is_pending]


def failed_indices(timeline: Sequence[TimelineItem]) -> list[int]:
    return [i for i, item in enumerate(timeline) if item.has_failed]


@dataclass(frozen=True)
class GateState:
    """Snapshot of the downstream gate for one timeline."""

    has_failures: bool
    is_busy: bool
    is_complete: bool
    pending: int
    total: int

    @classmethod
    def of(cls, timeline: Sequence[TimelineItem]) -> "GateState":
        return cls(
            has_failures=has_failures(timeline),
            is_busy=is_busy(timeline),
            is_complete=is_complete(timeline),
            pending=len(pending_indices(timeline)),
            total=len(timeline),
        )

    @property
    def can_generate_all(self) -> bool:
        return self.pending > 0 and not self.is_busy

    @property
    def can_retry_failed(self) -> bool:
        return self.has_failures and not self.is_busy

    @property
    def can_advance(self) -> bool:
        """Whether the scenes may be sent on to the video stage."""
        return self.is_complete
