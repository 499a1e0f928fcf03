"""Scene image pipeline: store, limiter, quota breaker, orchestrator, gate."""

from viralstudio.pipeline.gate import GateState
from viralstudio.pipeline.orchestrator import BatchOrchestrator
from viralstudio.pipeline.quota_breaker import DailyQuotaBreaker
from viralstudio.pipeline.rate_limiter import Admission, SlidingWindowRateLimiter
from viralstudio.pipeline.session import StudioSession
from viralstudio.pipeline.timeline_store import TimelineRef, TimelineStore

__all__ = [
    "Admission",
    "BatchOrchestrator",
    "DailyQuotaBreaker",
    "GateState",
    "SlidingWindowRateLimiter",
    "StudioSession",
    "TimelineRef",
    "TimelineStore",
]
