"""Size- and time-triggered batching in front of the sink.

The dispatch side only ever awaits ``put`` on a bounded queue. A single
background task drains that queue into the pending batch and performs every
flush, so at most one flush is in flight and a flush never races with
appends: the pending list is swapped for a fresh one before the sink is
awaited.

A flush happens when the pending batch reaches ``batch_size`` or when
``interval`` seconds have passed since the previous flush (or tick) and the
batch is non-empty. Sink failures drop the batch. Pending events are not
flushed on shutdown.
"""

from __future__ import annotations

import asyncio

from k8stream.models.events import EnrichedEvent
from k8stream.observability.logging import get_logger
from k8stream.observability.metrics import (
    batches_flushed_total,
    events_delivered_total,
    pending_events,
    sink_failures_total,
)
from k8stream.sinks.base import Sink

_log = get_logger("pipeline.batcher")


class Batcher:
    """Accumulates EnrichedEvents and hands them to a Sink in batches.

    Args:
        run_id:      identifier of this pipeline run, passed to the sink.
        sink:        batch destination.
        batch_size:  size threshold that triggers an immediate flush.
        interval:    seconds between timer-triggered flushes.
        queue_size:  bound of the hand-off queue between dispatch and batcher.
    """

    def __init__(
        self,
        run_id: str,
        sink: Sink,
        batch_size: int,
        interval: float,
        queue_size: int = 1000,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._run_id = run_id
        self._sink = sink
        self._batch_size = batch_size
        self._interval = interval
        self._queue: asyncio.Queue[EnrichedEvent] = asyncio.Queue(maxsize=queue_size)
        self._pending: list[EnrichedEvent] = []
        self._task: asyncio.Task[None] | None = None

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize()

    async def put(self, event: EnrichedEvent) -> None:
        """Hand *event* to the batcher. Waits only while the queue is full."""
        await self._queue.put(event)

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="batcher")
        _log.info(
            "batcher_started",
            run_id=self._run_id,
            batch_size=self._batch_size,
            interval=self._interval,
        )

    async def stop(self) -> None:
        """Cancel the batching task. Events still pending are discarded."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        dropped = len(self._pending) + self._queue.qsize()
        if dropped:
            _log.warning("batcher_stopped_with_pending_events", dropped=dropped)
        _log.info("batcher_stopped", run_id=self._run_id)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._interval
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                await self._flush("interval")
                deadline = loop.time() + self._interval
                continue

            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=remaining)
            except TimeoutError:
                continue

            self._pending.append(event)
            pending_events.set(len(self._pending))
            if len(self._pending) >= self._batch_size:
                await self._flush("size")
                deadline = loop.time() + self._interval

    async def _flush(self, trigger: str) -> None:
        batch, self._pending = self._pending, []
        pending_events.set(0)
        if not batch:
            return

        try:
            await self._sink.deliver(self._run_id, batch)
        except Exception as exc:
            sink_failures_total.inc()
            _log.error(
                "batch_delivery_failed",
                sink=self._sink.sink_name,
                trigger=trigger,
                size=len(batch),
                error=str(exc),
            )
            return

        batches_flushed_total.labels(trigger=trigger).inc()
        events_delivered_total.inc(len(batch))
        _log.info("batch_flushed", sink=self._sink.sink_name, trigger=trigger, size=len(batch))
