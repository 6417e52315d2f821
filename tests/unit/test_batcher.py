"""Unit tests for the size/time-triggered Batcher.

Intervals are scaled down to fractions of a second; assertions allow for
scheduler jitter.
"""

from __future__ import annotations

import asyncio

import pytest

from k8stream.models.events import EnrichedEvent
from k8stream.pipeline.batcher import Batcher

from tests.conftest import RecordingSink


def _ev(n: int) -> EnrichedEvent:
    return EnrichedEvent(id=f"E{n}", timestamp=n)


async def _wait_for_batches(sink: RecordingSink, count: int, timeout: float = 3.0) -> None:
    async def _poll() -> None:
        while len(sink.batches) < count:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)


class TestConstruction:
    def test_invalid_batch_size_rejected(self) -> None:
        with pytest.raises(ValueError):
            Batcher("run", RecordingSink(), batch_size=0, interval=1.0)

    def test_invalid_interval_rejected(self) -> None:
        with pytest.raises(ValueError):
            Batcher("run", RecordingSink(), batch_size=1, interval=0)


class TestSizeTrigger:
    async def test_flushes_when_batch_size_reached(self) -> None:
        sink = RecordingSink()
        batcher = Batcher("run-1", sink, batch_size=3, interval=60.0)
        await batcher.start()
        try:
            for n in range(7):
                await batcher.put(_ev(n))
            await _wait_for_batches(sink, 2)
            assert [[e.id for e in b] for _, b in sink.batches] == [["E0", "E1", "E2"], ["E3", "E4", "E5"]]
            assert all(run_id == "run-1" for run_id, _ in sink.batches)
            assert batcher.pending_count == 1
        finally:
            await batcher.stop()

    async def test_batches_never_exceed_size(self) -> None:
        sink = RecordingSink()
        batcher = Batcher("run", sink, batch_size=4, interval=0.1)
        await batcher.start()
        try:
            for n in range(23):
                await batcher.put(_ev(n))
            await _wait_for_batches(sink, 6)
            sizes = [len(b) for _, b in sink.batches]
            assert sum(sizes) == 23
            assert all(0 < s <= 4 for s in sizes)
            delivered = [e.id for _, b in sink.batches for e in b]
            assert delivered == [f"E{n}" for n in range(23)]
        finally:
            await batcher.stop()


class TestTimeTrigger:
    async def test_timer_flushes_partial_batch(self) -> None:
        sink = RecordingSink()
        batcher = Batcher("run", sink, batch_size=100, interval=0.2)
        await batcher.start()
        try:
            await batcher.put(_ev(1))
            await _wait_for_batches(sink, 1)
            assert [e.id for e in sink.batches[0][1]] == ["E1"]
        finally:
            await batcher.stop()

    async def test_no_empty_flush(self) -> None:
        sink = RecordingSink()
        batcher = Batcher("run", sink, batch_size=10, interval=0.05)
        await batcher.start()
        try:
            await asyncio.sleep(0.3)
            assert sink.batches == []
        finally:
            await batcher.stop()

    async def test_size_then_timer_scenario(self) -> None:
        """batch_size=2: events at t0, t1 flush together; t2 waits one interval after t1."""
        interval = 0.5
        sink = RecordingSink()
        batcher = Batcher("run", sink, batch_size=2, interval=interval)
        loop = asyncio.get_running_loop()
        flushed_at: list[float] = []
        original = sink.deliver

        async def timed_deliver(run_id: str, events: list[EnrichedEvent]) -> None:
            flushed_at.append(loop.time())
            await original(run_id, events)

        sink.deliver = timed_deliver  # type: ignore[method-assign]
        await batcher.start()
        try:
            await batcher.put(_ev(1))
            await asyncio.sleep(0.05)
            await batcher.put(_ev(2))
            await asyncio.sleep(0.05)
            await batcher.put(_ev(3))
            await _wait_for_batches(sink, 2)

            assert [[e.id for e in b] for _, b in sink.batches] == [["E1", "E2"], ["E3"]]
            gap = flushed_at[1] - flushed_at[0]
            assert gap >= interval * 0.9
            assert gap < interval * 1.8
        finally:
            await batcher.stop()


class TestFailures:
    async def test_sink_failure_drops_batch_and_continues(self) -> None:
        sink = RecordingSink(failures=1)
        batcher = Batcher("run", sink, batch_size=2, interval=60.0)
        await batcher.start()
        try:
            for n in range(4):
                await batcher.put(_ev(n))
            await _wait_for_batches(sink, 1)
            assert [[e.id for e in b] for _, b in sink.batches] == [["E2", "E3"]]
        finally:
            await batcher.stop()

    async def test_events_accepted_during_slow_flush(self) -> None:
        release = asyncio.Event()
        sink = RecordingSink()
        original = sink.deliver

        async def slow_deliver(run_id: str, events: list[EnrichedEvent]) -> None:
            await release.wait()
            await original(run_id, events)

        sink.deliver = slow_deliver  # type: ignore[method-assign]
        batcher = Batcher("run", sink, batch_size=1, interval=60.0, queue_size=10)
        await batcher.start()
        try:
            await batcher.put(_ev(1))
            await asyncio.sleep(0.05)
            # The first flush is blocked; new events still enter the queue.
            for n in range(2, 5):
                await asyncio.wait_for(batcher.put(_ev(n)), timeout=0.5)
            assert batcher.queue_depth == 3
            release.set()
            await _wait_for_batches(sink, 4)
            assert [b[0].id for _, b in sink.batches] == ["E1", "E2", "E3", "E4"]
        finally:
            await batcher.stop()


class TestShutdown:
    async def test_stop_discards_pending(self) -> None:
        sink = RecordingSink()
        batcher = Batcher("run", sink, batch_size=10, interval=60.0)
        await batcher.start()
        await batcher.put(_ev(1))
        await asyncio.sleep(0.05)
        await batcher.stop()
        assert sink.batches == []

    async def test_stop_without_start_is_safe(self) -> None:
        await Batcher("run", RecordingSink(), batch_size=1, interval=1.0).stop()
