"""Tests for scene image batch orchestration."""

import asyncio

import pytest

from conftest import TOPIC, FakeImageGenerator, make_scenes
from viralstudio.errors import (
    DAILY_QUOTA_MESSAGE,
    InputValidationError,
)
from viralstudio.models.schemas import BatchStatus
from viralstudio.pipeline.countdown import Countdown
from viralstudio.pipeline.notices import StudioNotices
from viralstudio.pipeline.orchestrator import BatchOrchestrator
from viralstudio.pipeline.quota_breaker import DailyQuotaBreaker
from viralstudio.pipeline.rate_limiter import SlidingWindowRateLimiter


def make_orchestrator(store, generator, clock, quota=25):
    notices = StudioNotices()
    return BatchOrchestrator(
        store=store,
        image_generator=generator,
        rate_limiter=SlidingWindowRateLimiter(quota=quota, window_seconds=60),
        quota_breaker=DailyQuotaBreaker(),
        notices=notices,
        clock=clock,
    )


class TestRunBatch:
    def test_generates_requested_scenes(self, store, clock):
        generator = FakeImageGenerator()
        orchestrator = make_orchestrator(store, generator, clock)

        result = asyncio.run(orchestrator.run_batch([0, 2]))

        assert result.status == BatchStatus.COMPLETED
        assert result.succeeded == [0, 2]
        timeline = store.active_timeline()
        assert timeline[0].image_url == "data:image/png;base64,prompt_0"
        assert timeline[1].image_url is None
        assert not any(item.is_generating for item in timeline)
        assert generator.calls == [("prompt 0", "9:16"), ("prompt 2", "9:16")]

    def test_duplicate_indices_dispatch_once(self, store, clock):
        generator = FakeImageGenerator()
        orchestrator = make_orchestrator(store, generator, clock)

        asyncio.run(orchestrator.run_batch([1, 1, 1]))

        assert generator.prompts == ["prompt 1"]
        assert orchestrator.rate_limiter.current_count(clock()) == 1

    def test_scenes_with_images_are_skipped(self, store, clock):
        generator = FakeImageGenerator()
        orchestrator = make_orchestrator(store, generator, clock)
        asyncio.run(orchestrator.run_batch([0]))

        result = asyncio.run(orchestrator.run_batch([0, 1]))

        assert result.dispatched == [1]
        assert result.skipped == [0]
        assert generator.prompts == ["prompt 0", "prompt 1"]
        assert orchestrator.rate_limiter.current_count(clock()) == 3

    def test_nothing_to_do(self, store, clock):
        generator = FakeImageGenerator()
        orchestrator = make_orchestrator(store, generator, clock)
        asyncio.run(orchestrator.generate_all())

        result = asyncio.run(orchestrator.generate_all())

        assert result.status == BatchStatus.NOTHING_TO_DO
        assert len(generator.calls) == 4

    def test_partial_failure(self, store, clock):
        generator = FakeImageGenerator(failures={"prompt 1": RuntimeError("backend error")})
        orchestrator = make_orchestrator(store, generator, clock)

        result = asyncio.run(orchestrator.generate_all())

        assert result.status == BatchStatus.COMPLETED
        assert result.succeeded == [0, 2, 3]
        assert result.failed == [1]
        timeline = store.active_timeline()
        assert timeline[1].generation_error == "Gagal"
        assert timeline[1].image_url is None
        assert timeline[0].image_url
        assert orchestrator.notices.timeline_error == ""

    def test_retry_failed_only_touches_failures(self, store, clock):
        generator = FakeImageGenerator(failures={"prompt 3": RuntimeError("backend error")})
        orchestrator = make_orchestrator(store, generator, clock)
        asyncio.run(orchestrator.generate_all())

        generator.failures.clear()
        result = asyncio.run(orchestrator.retry_failed())

        assert result.succeeded == [3]
        assert generator.prompts[-1] == "prompt 3"
        assert store.active_timeline()[3].generation_error is None
        assert store.active_timeline()[3].image_url

    def test_retry_without_failures(self, store, clock):
        orchestrator = make_orchestrator(store, FakeImageGenerator(), clock)
        result = asyncio.run(orchestrator.retry_failed())
        assert result.status == BatchStatus.NOTHING_TO_DO

    def test_invalid_index(self, store, clock):
        orchestrator = make_orchestrator(store, FakeImageGenerator(), clock)
        with pytest.raises(InputValidationError):
            asyncio.run(orchestrator.run_batch([4]))
        with pytest.raises(InputValidationError):
            asyncio.run(orchestrator.run_batch(["1"]))

    def test_no_active_timeline(self, store, clock):
        store.select_idea(None)
        orchestrator = make_orchestrator(store, FakeImageGenerator(), clock)
        with pytest.raises(InputValidationError):
            asyncio.run(orchestrator.run_batch([0]))

    def test_batch_larger_than_quota(self, store, clock):
        store.replace_timeline(TOPIC, 1, "long", make_scenes(6))
        generator = FakeImageGenerator()
        orchestrator = make_orchestrator(store, generator, clock, quota=5)

        result = asyncio.run(orchestrator.generate_all())

        assert result.status == BatchStatus.RATE_LIMITED
        assert result.exceeds_quota
        assert result.wait_seconds == 60
        assert "Batas kuota tercapai" in result.message
        assert "melebihi batas 5" in result.message
        assert orchestrator.notices.rate_limit_error == result.message
        assert generator.calls == []
        assert orchestrator.rate_limiter.current_count(clock()) == 0

    def test_already_generated_scenes_are_charged(self, store, clock):
        generator = FakeImageGenerator()
        orchestrator = make_orchestrator(store, generator, clock, quota=3)
        asyncio.run(orchestrator.run_batch([0, 1]))

        result = asyncio.run(orchestrator.run_batch([0, 1]))

        assert result.status == BatchStatus.RATE_LIMITED
        assert len(generator.calls) == 2

    def test_only_skipped_scenes_still_count(self, store, clock):
        generator = FakeImageGenerator()
        orchestrator = make_orchestrator(store, generator, clock)
        asyncio.run(orchestrator.run_batch([0]))

        result = asyncio.run(orchestrator.run_batch([0]))

        assert result.status == BatchStatus.NOTHING_TO_DO
        assert result.skipped == [0]
        assert orchestrator.rate_limiter.current_count(clock()) == 2


class TestRateLimiting:
    def test_denied_batch_is_atomic(self, store, clock):
        store.replace_timeline(TOPIC, 1, "long", make_scenes(15))
        generator = FakeImageGenerator()
        orchestrator = make_orchestrator(store, generator, clock)

        first = asyncio.run(orchestrator.run_batch(range(10)))
        clock.now = 5
        store.replace_timeline(TOPIC, 1, "long", make_scenes(20))
        second = asyncio.run(orchestrator.run_batch(range(10)))
        clock.now = 6
        third = asyncio.run(orchestrator.run_batch(range(10, 20)))

        assert first.status == BatchStatus.COMPLETED
        assert second.status == BatchStatus.COMPLETED
        assert third.status == BatchStatus.RATE_LIMITED
        assert third.wait_seconds == 54
        assert third.dispatched == []
        assert len(generator.calls) == 20
        assert all(item.is_pending for item in store.active_timeline()[10:])
        assert orchestrator.rate_limiter.current_count(clock()) == 20

    def test_denial_sets_notice(self, store, clock):
        orchestrator = make_orchestrator(store, FakeImageGenerator(), clock, quota=3)
        asyncio.run(orchestrator.run_batch([0, 1, 2]))

        result = asyncio.run(orchestrator.run_batch([3]))

        assert result.status == BatchStatus.RATE_LIMITED
        assert "60 detik" in result.message
        assert orchestrator.notices.rate_limit_error == result.message
        assert orchestrator.countdown.remaining == 60

    def test_countdown_clears_notice_across_event_loops(self, store, clock):
        orchestrator = make_orchestrator(store, FakeImageGenerator(), clock, quota=1)
        asyncio.run(orchestrator.run_batch([0]))
        clock.now = 57

        result = asyncio.run(orchestrator.run_batch([1]))

        assert result.wait_seconds == 3
        assert orchestrator.notices.rate_limit_error == result.message
        clock.now = 59
        assert orchestrator.countdown.remaining == 1
        assert orchestrator.notices.rate_limit_error

        clock.now = 60
        assert orchestrator.countdown.remaining == 0
        assert orchestrator.notices.rate_limit_error == ""
        assert not orchestrator.countdown.running

    def test_next_batch_clears_expired_notice(self, store, clock):
        orchestrator = make_orchestrator(store, FakeImageGenerator(), clock, quota=1)
        asyncio.run(orchestrator.run_batch([0]))
        clock.now = 30
        asyncio.run(orchestrator.run_batch([1]))
        assert orchestrator.notices.rate_limit_error

        clock.now = 60
        result = asyncio.run(orchestrator.run_batch([1]))

        assert result.status == BatchStatus.COMPLETED
        assert orchestrator.notices.rate_limit_error == ""

    def test_window_frees_up(self, store, clock):
        generator = FakeImageGenerator()
        orchestrator = make_orchestrator(store, generator, clock, quota=2)
        asyncio.run(orchestrator.run_batch([0, 1]))

        clock.now = 30
        assert asyncio.run(orchestrator.run_batch([2])).status == BatchStatus.RATE_LIMITED
        clock.now = 60
        assert asyncio.run(orchestrator.run_batch([2, 3])).status == BatchStatus.COMPLETED


class TestDailyQuota:
    def test_latch_blocks_later_batches(self, store, clock, daily_quota_error):
        generator = FakeImageGenerator(failures={"prompt 0": daily_quota_error})
        orchestrator = make_orchestrator(store, generator, clock)

        first = asyncio.run(orchestrator.run_batch([0]))

        assert first.failed == [0]
        assert orchestrator.quota_breaker.is_latched
        assert orchestrator.notices.daily_quota_error == DAILY_QUOTA_MESSAGE
        assert orchestrator.notices.timeline_error == DAILY_QUOTA_MESSAGE

        second = asyncio.run(orchestrator.run_batch([1, 2]))

        assert second.status == BatchStatus.QUOTA_BLOCKED
        assert second.message == DAILY_QUOTA_MESSAGE
        assert generator.prompts == ["prompt 0"]
        assert orchestrator.rate_limiter.current_count(clock()) == 1

    def test_latched_check_precedes_validation(self, store, clock):
        orchestrator = make_orchestrator(store, FakeImageGenerator(), clock)
        orchestrator.quota_breaker.inspect("quota exceeded per day")

        result = asyncio.run(orchestrator.run_batch([99]))

        assert result.status == BatchStatus.QUOTA_BLOCKED

    def test_concurrent_quota_failures_latch_once(self, store, clock, daily_quota_error):
        generator = FakeImageGenerator(
            failures={f"prompt {i}": daily_quota_error for i in range(4)}
        )
        orchestrator = make_orchestrator(store, generator, clock)

        result = asyncio.run(orchestrator.generate_all())

        assert result.failed == [0, 1, 2, 3]
        assert orchestrator.quota_breaker.trigger == daily_quota_error.provider_message


class TestConcurrency:
    def test_second_batch_while_running_is_busy(self, store, clock):
        async def scenario():
            generator = FakeImageGenerator(hold=True)
            orchestrator = make_orchestrator(store, generator, clock)

            running = asyncio.create_task(orchestrator.run_batch([0]))
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            assert orchestrator.is_running()
            assert store.active_timeline()[0].is_generating

            busy = await orchestrator.run_batch([1])
            generator.release()
            done = await running
            return orchestrator, busy, done

        orchestrator, busy, done = asyncio.run(scenario())

        assert busy.status == BatchStatus.BUSY
        assert done.succeeded == [0]
        assert not orchestrator.is_running()

    def test_response_for_replaced_timeline_is_discarded(self, store, clock):
        async def scenario():
            generator = FakeImageGenerator(hold=True)
            orchestrator = make_orchestrator(store, generator, clock)

            running = asyncio.create_task(orchestrator.run_batch([0, 1]))
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            store.replace_timeline(TOPIC, 1, "rewritten", make_scenes(4))
            generator.release()
            return await running

        result = asyncio.run(scenario())

        assert result.discarded == [0, 1]
        assert result.succeeded == []
        timeline = store.active_timeline()
        assert all(item.is_pending for item in timeline)
        assert store.active_ref().version == 2

    def test_replaced_before_dispatch_sends_no_request(self, store, clock):
        async def scenario():
            generator = FakeImageGenerator(hold=True)
            orchestrator = make_orchestrator(store, generator, clock)

            running = asyncio.create_task(orchestrator.run_batch([0, 1]))
            await asyncio.sleep(0)
            store.replace_timeline(TOPIC, 1, "rewritten", make_scenes(4))
            generator.release()
            return generator, await running

        generator, result = asyncio.run(scenario())

        assert result.discarded == [0, 1]
        assert generator.calls == []
        assert not any(item.is_generating for item in store.active_timeline())


class TestCountdown:
    def test_counts_down_and_expires_once(self, clock):
        expired = []
        countdown = Countdown(on_expire=lambda: expired.append(True), clock=clock)

        countdown.start(2)
        assert countdown.running
        clock.now = 1.2
        assert countdown.remaining == 1
        assert not expired
        clock.now = 2
        assert countdown.remaining == 0
        assert expired == [True]
        clock.now = 5
        assert countdown.remaining == 0
        assert expired == [True]

    def test_zero_expires_immediately(self, clock):
        expired = []
        countdown = Countdown(on_expire=lambda: expired.append(True), clock=clock)
        countdown.start(0)
        assert expired == [True]
        assert not countdown.running

    def test_restart_replaces_previous_deadline(self, clock):
        countdown = Countdown(on_expire=lambda: None, clock=clock)
        countdown.start(10)
        clock.now = 4
        countdown.start(3)
        assert countdown.remaining == 3
        clock.now = 7
        assert countdown.remaining == 0

    def test_cancel_skips_expiry(self, clock):
        expired = []
        countdown = Countdown(on_expire=lambda: expired.append(True), clock=clock)
        countdown.start(5)
        countdown.cancel()
        clock.now = 10
        assert countdown.remaining == 0
        assert expired == []
