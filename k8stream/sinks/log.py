"""Sink that writes batches to the structured log. Useful without a backend."""

from __future__ import annotations

from k8stream.models.events import EnrichedEvent
from k8stream.observability.logging import get_logger
from k8stream.sinks.base import Sink

_log = get_logger("sinks.log")


class LogSink(Sink):
    @property
    def sink_name(self) -> str:
        return "log"

    async def deliver(self, run_id: str, events: list[EnrichedEvent]) -> None:
        _log.info("batch", run_id=run_id, size=len(events), events=[e.to_dict() for e in events])
