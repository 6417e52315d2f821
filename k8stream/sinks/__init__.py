"""Telemetry sinks for k8stream.

Exports:
    Sink       -- Abstract base for all sinks.
    SinkError  -- Raised on failed delivery.
    HTTPSink   -- JSON POST to a configured URL.
    LogSink    -- Writes batches to the structured log.
    build_sink -- Factory used by the application bootstrap.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from k8stream.sinks.base import Sink, SinkError
from k8stream.sinks.http import HTTPSink
from k8stream.sinks.log import LogSink

if TYPE_CHECKING:
    from k8stream.models.config import SinkConfig

__all__ = ["HTTPSink", "LogSink", "Sink", "SinkError", "build_sink"]


def build_sink(config: SinkConfig) -> Sink:
    """Build the sink named by ``config.kind``.

    Raises:
        ValueError: unknown kind, or ``http`` without a URL.
    """
    if config.kind == "http":
        return HTTPSink(url=config.url, token=config.token, timeout=config.timeout_seconds)
    if config.kind == "log":
        return LogSink()
    raise ValueError(f"Unknown sink kind: {config.kind!r}. Must be one of {{'http', 'log'}}")
