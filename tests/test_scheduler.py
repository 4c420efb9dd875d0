"""Tests for TranslationScheduler: batch selection, dispatch and lifecycle.

Most tests hold the limiter's only concurrency slot while enqueueing so that
no eager tick fires, then release it and drive ``process_queue`` by hand.
"""

import asyncio

import pytest

from translation_gateway.core.exceptions import (
    ProviderError,
    RequestTooLargeError,
    SchedulerStoppedError,
)
from translation_gateway.services.translation.queued_request import (
    PRIORITY_HIGH,
    PRIORITY_MEDIUM,
    PRIORITY_STANDARD,
)


def hold_slot(scheduler, tokens=0):
    scheduler.limiter.record_admission(tokens)


def release_slot(scheduler):
    scheduler.limiter.record_completion()


def dispatched_texts(provider):
    return [text for text, _ in provider.calls]


class TestBatchSelection:
    @pytest.mark.asyncio
    async def test_priority_order(self, make_scheduler, fake_provider):
        scheduler = make_scheduler(max_concurrent=1)
        hold_slot(scheduler)
        low = scheduler.enqueue("low", "zh", PRIORITY_STANDARD)
        high = scheduler.enqueue("high", "zh", PRIORITY_HIGH)
        medium = scheduler.enqueue("medium", "zh", PRIORITY_MEDIUM)
        release_slot(scheduler)

        await scheduler.process_queue()

        assert dispatched_texts(fake_provider) == ["high", "medium", "low"]
        assert await low == "[zh] low"
        assert await high == "[zh] high"
        assert await medium == "[zh] medium"

    @pytest.mark.asyncio
    async def test_fifo_within_priority(self, make_scheduler, fake_provider):
        scheduler = make_scheduler(max_concurrent=1)
        hold_slot(scheduler)
        futures = [scheduler.enqueue(f"text {i}", "zh", PRIORITY_MEDIUM) for i in range(3)]
        release_slot(scheduler)

        await scheduler.process_queue()

        assert dispatched_texts(fake_provider) == ["text 0", "text 1", "text 2"]
        await asyncio.gather(*futures)

    @pytest.mark.asyncio
    async def test_batch_size_limit(self, make_scheduler, fake_provider):
        scheduler = make_scheduler(max_concurrent=1, batch_size=2)
        hold_slot(scheduler)
        futures = [scheduler.enqueue(f"text {i}", "zh") for i in range(3)]
        release_slot(scheduler)

        await scheduler.process_queue()

        assert len(fake_provider.calls) == 2
        assert scheduler.queue_length == 1
        assert not futures[2].done()

        await scheduler.process_queue()
        assert scheduler.queue_length == 0
        assert await futures[2] == "[zh] text 2"

    @pytest.mark.asyncio
    async def test_quarter_tpm_guard(self, make_scheduler, fake_provider):
        # tpm=100 -> guard at 25 tokens; each 40-char text costs 10 tokens
        scheduler = make_scheduler(max_concurrent=1, tpm=100)
        hold_slot(scheduler)
        texts = [c * 40 for c in "abc"]
        futures = [scheduler.enqueue(text, "zh") for text in texts]
        release_slot(scheduler)

        await scheduler.process_queue()

        assert dispatched_texts(fake_provider) == texts[:2]
        assert scheduler.queue_length == 1
        await asyncio.gather(*futures[:2])
        futures[2].cancel()

    @pytest.mark.asyncio
    async def test_first_item_exempt_from_guard(self, make_scheduler, fake_provider):
        # 200 chars -> 50 tokens, above the guard but within tpm
        scheduler = make_scheduler(tpm=100)
        big = "x" * 200

        result = await scheduler.enqueue(big, "zh")

        assert result == f"[zh] {big}"
        assert scheduler.limiter.tokens_last_minute() == 50

    @pytest.mark.asyncio
    async def test_walk_stops_at_first_inadmissible(
        self, make_scheduler, fake_provider, clock
    ):
        scheduler = make_scheduler(max_concurrent=1, tpm=100)
        hold_slot(scheduler, tokens=60)
        big = scheduler.enqueue("x" * 200, "zh", PRIORITY_HIGH)  # 50 tokens
        small = scheduler.enqueue("tiny", "zh", PRIORITY_STANDARD)  # 1 token
        release_slot(scheduler)

        # 60 + 50 > 100: the small request behind it waits too
        assert await scheduler.process_queue() is None
        assert fake_provider.calls == []
        assert scheduler.queue_length == 2

        clock.advance(61)
        await scheduler.process_queue()
        assert dispatched_texts(fake_provider) == ["x" * 200]
        await big

        await scheduler.process_queue()
        assert await small == "[zh] tiny"

    @pytest.mark.asyncio
    async def test_request_larger_than_tpm_rejected(self, make_scheduler):
        scheduler = make_scheduler(tpm=10)

        with pytest.raises(RequestTooLargeError):
            await scheduler.enqueue("y" * 100, "zh")
        assert scheduler.queue_length == 0


class TestDispatch:
    @pytest.mark.asyncio
    async def test_admission_recorded_once_per_batch(self, make_scheduler):
        scheduler = make_scheduler(max_concurrent=1)
        hold_slot(scheduler)
        futures = [scheduler.enqueue(f"item {i}", "zh") for i in range(3)]
        release_slot(scheduler)
        before = scheduler.limiter.requests_last_minute()

        await scheduler.process_queue()
        await asyncio.gather(*futures)

        assert scheduler.limiter.requests_last_minute() == before + 1
        assert scheduler.limiter.active_requests == 0

    @pytest.mark.asyncio
    async def test_duplicates_share_one_call(self, make_scheduler, fake_provider):
        scheduler = make_scheduler(max_concurrent=1)
        hold_slot(scheduler)
        futures = [
            scheduler.enqueue(text, "zh") for text in ("Hello", " hello ", "HELLO")
        ]
        release_slot(scheduler)

        report = await scheduler.process_queue()

        assert len(fake_provider.calls) == 1
        assert report.groups == 1
        assert report.outbound_calls == 1
        results = await asyncio.gather(*futures)
        assert results == ["[zh] Hello"] * 3

    @pytest.mark.asyncio
    async def test_failure_rejects_only_its_group(self, make_scheduler, fake_provider):
        fake_provider.failures["bad"] = ProviderError("boom")
        scheduler = make_scheduler(max_concurrent=1)
        hold_slot(scheduler)
        bad_1 = scheduler.enqueue("bad", "zh")
        bad_2 = scheduler.enqueue("bad", "zh")
        good = scheduler.enqueue("good", "zh")
        release_slot(scheduler)

        report = await scheduler.process_queue()

        assert report.failures == 1
        for future in (bad_1, bad_2):
            with pytest.raises(ProviderError):
                await future
        assert await good == "[zh] good"
        assert scheduler.limiter.active_requests == 0
        assert scheduler.is_processing is False

    @pytest.mark.asyncio
    async def test_results_are_cached(self, make_scheduler, fake_provider, cache):
        scheduler = make_scheduler()

        assert await scheduler.enqueue("cache me", "zh") == "[zh] cache me"
        assert cache.get("zh:cache me") == "[zh] cache me"

    @pytest.mark.asyncio
    async def test_eager_tick_dispatches_without_loop(self, make_scheduler):
        scheduler = make_scheduler()
        assert scheduler.is_running is False

        result = await asyncio.wait_for(scheduler.enqueue("eager", "en"), timeout=1)

        assert result == "[en] eager"

    @pytest.mark.asyncio
    async def test_empty_queue_tick_is_noop(self, make_scheduler, fake_provider):
        scheduler = make_scheduler()
        assert await scheduler.process_queue() is None
        assert fake_provider.calls == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_tick_loop_drains_queue(self, make_scheduler):
        scheduler = make_scheduler(max_concurrent=1)
        async with scheduler:
            assert scheduler.is_running is True
            hold_slot(scheduler)
            future = scheduler.enqueue("looped", "zh")
            release_slot(scheduler)

            assert await asyncio.wait_for(future, timeout=2) == "[zh] looped"
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_stop_rejects_queued_requests(self, make_scheduler):
        scheduler = make_scheduler(max_concurrent=1)
        await scheduler.start()
        hold_slot(scheduler)
        future = scheduler.enqueue("never sent", "zh")

        await scheduler.stop()

        with pytest.raises(SchedulerStoppedError):
            await future
        assert scheduler.queue_length == 0

    @pytest.mark.asyncio
    async def test_stop_rejects_in_flight_batch(self, make_scheduler, fake_provider):
        fake_provider.gate = asyncio.Event()
        scheduler = make_scheduler()
        future = scheduler.enqueue("slow", "zh")
        # Let the eager tick reach the provider
        while not fake_provider.calls:
            await asyncio.sleep(0)

        await scheduler.stop()

        with pytest.raises(SchedulerStoppedError):
            await future
        assert scheduler.limiter.active_requests == 0


class TestReconfigure:
    @pytest.mark.asyncio
    async def test_lowered_tpm_rejects_queued_oversized_request(
        self, make_scheduler, fake_provider
    ):
        scheduler = make_scheduler(max_concurrent=1, tpm=1000)
        hold_slot(scheduler)
        big = scheduler.enqueue("x" * 2000, "zh", PRIORITY_HIGH)  # 500 tokens
        small = scheduler.enqueue("tiny", "zh", PRIORITY_STANDARD)
        release_slot(scheduler)

        scheduler.reconfigure(scheduler.limiter.config.merged(tpm=100))

        with pytest.raises(RequestTooLargeError):
            await big
        assert scheduler.queue_length == 1

        await scheduler.process_queue()
        assert await small == "[zh] tiny"
        assert dispatched_texts(fake_provider) == ["tiny"]

    @pytest.mark.asyncio
    async def test_tick_rejects_oversized_after_limiter_change(
        self, make_scheduler, fake_provider, clock
    ):
        scheduler = make_scheduler(max_concurrent=1, tpm=1000)
        hold_slot(scheduler)
        big = scheduler.enqueue("x" * 2000, "zh", PRIORITY_HIGH)
        small = scheduler.enqueue("tiny", "zh", PRIORITY_STANDARD)
        release_slot(scheduler)
        # Limiter changed directly, bypassing the scheduler
        scheduler.limiter.reconfigure(scheduler.limiter.config.merged(tpm=100))

        for _ in range(2):
            clock.advance(61)
            await scheduler.process_queue()

        with pytest.raises(RequestTooLargeError):
            await big
        assert await small == "[zh] tiny"
        assert scheduler.queue_length == 0
