"""Batch orchestration of scene image generation.

A batch is a set of scene indices of the active timeline. It is checked
against the daily quota breaker and the sliding-window limiter as a whole,
then every admitted scene is generated concurrently on the event loop and
its outcome written back to the timeline store one item at a time.
"""

import asyncio
import logging
import time
from typing import Callable, Iterable, Optional

from viralstudio.errors import (
    BATCH_BUSY_MESSAGE,
    BATCH_TOO_LARGE_MESSAGE,
    FAILURE_TAG,
    RATE_LIMIT_MESSAGE,
    InputValidationError,
    to_generation_error,
)
from viralstudio.models.schemas import BatchResult, BatchStatus, TimelineItem
from viralstudio.pipeline import gate
from viralstudio.pipeline.countdown import Countdown
from viralstudio.pipeline.notices import StudioNotices
from viralstudio.pipeline.quota_breaker import DailyQuotaBreaker
from viralstudio.pipeline.rate_limiter import SlidingWindowRateLimiter
from viralstudio.pipeline.timeline_store import TimelineRef, TimelineStore

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
FAILED = "failed"
DISCARDED = "discarded"


class BatchOrchestrator:
    """Run scene image batches against the active timeline."""

    def __init__(
        self,
        store: TimelineStore,
        image_generator,
        rate_limiter: SlidingWindowRateLimiter,
        quota_breaker: DailyQuotaBreaker,
        notices: Optional[StudioNotices] = None,
        clock: Callable[[], float] = time.monotonic,
        aspect_ratio: str = "9:16",
        countdown: Optional[Countdown] = None,
    ):
        self.store = store
        self.image_generator = image_generator
        self.rate_limiter = rate_limiter
        self.quota_breaker = quota_breaker
        self.notices = notices or StudioNotices()
        self.clock = clock
        self.aspect_ratio = aspect_ratio
        self.countdown = countdown or Countdown(
            on_expire=self.notices.clear_rate_limit, clock=clock
        )
        self._in_flight: set[TimelineRef] = set()

    def is_running(self, ref: Optional[TimelineRef] = None) -> bool:
        ref = ref or self.store.active_ref()
        return ref in self._in_flight

    @staticmethod
    def _normalize_indices(indices: Iterable[int], size: int) -> list[int]:
        selected: list[int] = []
        for index in indices:
            if isinstance(index, bool) or not isinstance(index, int):
                raise InputValidationError(f"Scene index must be an integer, got {index!r}")
            if not 0 <= index < size:
                raise InputValidationError(f"Scene index {index} is out of range (0-{size - 1})")
            if index not in selected:
                selected.append(index)
        return selected

    async def run_batch(self, indices: Iterable[int]) -> BatchResult:
        """
        Generate images for the given scenes of the active timeline.

        The limiter is charged for every selected scene. Scenes that already
        have an image or a request in flight are then skipped. A batch is
        admitted or refused as a whole; per-scene failures are recorded on the
        scene and never fail the batch.

        Args:
            indices: Scene indices, duplicates are ignored

        Returns:
            BatchResult describing what was dispatched and how it ended
        """
        self.notices.timeline_error = ""
        self.countdown.refresh()

        if self.quota_breaker.is_latched:
            message = self.quota_breaker.message
            self.notices.timeline_error = message
            logger.warning("Daily quota exhausted, batch refused without any request")
            return BatchResult(status=BatchStatus.QUOTA_BLOCKED, message=message)

        ref = self.store.active_ref()
        if ref is None:
            raise InputValidationError("No active timeline to generate images for")

        if ref in self._in_flight:
            logger.warning(f"Batch already running for idea {ref.idea_id}, request rejected")
            return BatchResult(status=BatchStatus.BUSY, message=BATCH_BUSY_MESSAGE)

        timeline = self.store.timeline(ref)
        selected = self._normalize_indices(indices, len(timeline))
        if not selected:
            return BatchResult(status=BatchStatus.NOTHING_TO_DO)

        # Every selected scene counts against the quota, skipped ones included
        admission = self.rate_limiter.admit(len(selected), self.clock())
        if not admission.allowed:
            return self._deny(admission.wait_seconds, len(selected))

        dispatch = [i for i in selected if timeline[i].is_pending]
        skipped = [i for i in selected if i not in dispatch]
        if not dispatch:
            return BatchResult(status=BatchStatus.NOTHING_TO_DO, skipped=skipped)

        logger.info(f"Generating {len(dispatch)} scene images for idea {ref.idea_id}: {dispatch}")
        self._in_flight.add(ref)
        try:
            outcomes = await asyncio.gather(
                *(self._generate_item(ref, index, timeline[index]) for index in dispatch)
            )
        finally:
            self._in_flight.discard(ref)

        by_outcome = {SUCCEEDED: [], FAILED: [], DISCARDED: []}
        for index, outcome in zip(dispatch, outcomes):
            by_outcome[outcome].append(index)

        logger.info(
            f"Batch done: {len(by_outcome[SUCCEEDED])} ok, {len(by_outcome[FAILED])} failed, "
            f"{len(by_outcome[DISCARDED])} discarded"
        )
        return BatchResult(
            status=BatchStatus.COMPLETED,
            message=self.notices.timeline_error,
            dispatched=dispatch,
            succeeded=by_outcome[SUCCEEDED],
            failed=by_outcome[FAILED],
            skipped=skipped,
            discarded=by_outcome[DISCARDED],
        )

    def _deny(self, wait_seconds: int, batch_size: int) -> BatchResult:
        message = RATE_LIMIT_MESSAGE.format(seconds=wait_seconds)
        exceeds_quota = not self.rate_limiter.can_ever_admit(batch_size)
        if exceeds_quota:
            logger.warning(
                f"Batch of {batch_size} can never fit the quota of {self.rate_limiter.quota}"
            )
            message = f"{message} " + BATCH_TOO_LARGE_MESSAGE.format(
                count=batch_size, quota=self.rate_limiter.quota
            )

        self.notices.rate_limit_error = message
        self.countdown.start(wait_seconds)
        return BatchResult(
            status=BatchStatus.RATE_LIMITED,
            message=message,
            wait_seconds=wait_seconds,
            exceeds_quota=exceeds_quota,
        )

    async def _generate_item(self, ref: TimelineRef, index: int, scene: TimelineItem) -> str:
        if not self.store.update_item(ref, index, is_generating=True, generation_error=None):
            return DISCARDED

        try:
            image_url = await self.image_generator.generate_image(
                scene.image_prompt, self.aspect_ratio
            )
        except Exception as e:
            error = to_generation_error(e, FAILURE_TAG)
            logger.error(f"Image generation failed for scene {index} \"{scene.image_prompt[:60]}\": {error}")

            if self.quota_breaker.inspect(error.provider_message, error.kind):
                self.notices.daily_quota_error = self.quota_breaker.message
                self.notices.timeline_error = self.quota_breaker.message

            applied = self.store.update_item(
                ref, index, is_generating=False, generation_error=FAILURE_TAG
            )
            return FAILED if applied else DISCARDED

        applied = self.store.update_item(ref, index, image_url=image_url, is_generating=False)
        return SUCCEEDED if applied else DISCARDED

    # Selections offered to the front end

    async def generate_single(self, index: int) -> BatchResult:
        return await self.run_batch([index])

    async def generate_all(self) -> BatchResult:
        """Generate every scene that has no image yet."""
        indices = gate.pending_indices(self.store.active_timeline())
        if not indices:
            return BatchResult(status=BatchStatus.NOTHING_TO_DO)
        return await self.run_batch(indices)

    async def retry_failed(self) -> BatchResult:
        """Retry only the scenes whose last attempt failed."""
        indices = gate.failed_indices(self.store.active_timeline())
        if not indices:
            return BatchResult(status=BatchStatus.NOTHING_TO_DO)
        return await self.run_batch(indices)
