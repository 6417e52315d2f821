"""Configuration loading from environment variables."""

from __future__ import annotations

import os
from uuid import uuid4

from k8stream.models.config import (
    APIConfig,
    BatchConfig,
    HeartbeatConfig,
    K8StreamConfig,
    KubeConfig,
    LogConfig,
    SinkConfig,
    StoreConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"K8STREAM_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_sink_kind(value: str) -> str:
    valid = {"http", "log"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid sink kind: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> K8StreamConfig:
    """Load configuration from K8STREAM_* environment variables."""
    sink = SinkConfig(
        kind=_validate_sink_kind(_env("SINK", "log")),
        url=_env("SINK_URL", ""),
        token=_env("SINK_TOKEN", ""),
        timeout_seconds=_env_float("SINK_TIMEOUT", 10.0, min_val=1.0),
    )
    if sink.kind == "http" and not sink.url:
        raise ValueError("K8STREAM_SINK_URL is required when K8STREAM_SINK=http")

    return K8StreamConfig(
        uid=_env("UID", "") or str(uuid4()),
        batch=BatchConfig(
            size=_env_int("BATCH_SIZE", 100, min_val=1, max_val=10000),
            interval_seconds=_env_float("BATCH_INTERVAL", 10.0, min_val=0.1),
            queue_size=_env_int("QUEUE_SIZE", 1000, min_val=1),
        ),
        sink=sink,
        kube=KubeConfig(
            kubeconfig=_env("KUBECONFIG", ""),
            lookup_timeout_seconds=_env_float("LOOKUP_TIMEOUT", 5.0, min_val=0.5),
            watch_timeout_seconds=_env_int("WATCH_TIMEOUT", 300, min_val=30, max_val=3600),
        ),
        store=StoreConfig(
            event_ttl_seconds=_env_int("EVENT_TTL", 0, min_val=0),
            index_ttl_seconds=_env_int("INDEX_TTL", 0, min_val=0),
            node_address_ttl_seconds=_env_int("NODE_ADDRESS_TTL", 300, min_val=0),
            purge_interval_seconds=_env_int("PURGE_INTERVAL", 60, min_val=1),
        ),
        heartbeat=HeartbeatConfig(
            url=_env("HEARTBEAT_URL", ""),
            interval_seconds=_env_int("HEARTBEAT_INTERVAL", 60, min_val=1),
            timeout_seconds=_env_float("HEARTBEAT_TIMEOUT", 5.0, min_val=0.5),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
