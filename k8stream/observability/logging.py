"""Structured logging for k8stream.

Every record is one JSON line on stderr carrying ``component`` (bound per
module by ``get_logger``) and ``run_id`` (bound once at startup), so lines
from several pipeline runs can be told apart in a shared log store.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Libraries that log through the stdlib and are chatty at INFO.
_NOISY_LOGGERS = ("kubernetes_asyncio", "aiohttp.access", "uvicorn.access", "httpx")


def setup_logging(level: str = "info", run_id: str = "") -> None:
    """Configure structlog for JSON output to stderr at *level*."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.contextvars.clear_contextvars()
    if run_id:
        structlog.contextvars.bind_contextvars(run_id=run_id)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
