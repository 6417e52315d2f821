"""Sink contract.

A Sink accepts one batch per call and owns its own transport and
serialization. ``deliver`` raises :class:`SinkError` when the batch was not
accepted; the batcher logs and drops it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from k8stream.models.events import EnrichedEvent


class SinkError(Exception):
    """Raised when a batch could not be delivered."""


class Sink(ABC):
    """Abstract base class for telemetry sinks."""

    @property
    @abstractmethod
    def sink_name(self) -> str:
        """Identifier used in logs and metrics."""

    @abstractmethod
    async def deliver(self, run_id: str, events: list[EnrichedEvent]) -> None:
        """Deliver *events* produced by pipeline run *run_id*."""

    async def close(self) -> None:  # noqa: B027
        """Release transport resources."""
