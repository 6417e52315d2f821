"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class BatchConfig:
    """Batcher triggers and hand-off queue bound."""

    size: int = 100
    interval_seconds: float = 10.0
    queue_size: int = 1000


@dataclass
class SinkConfig:
    """Telemetry sink configuration.

    ``kind`` is ``http`` (POST JSON to ``url``) or ``log`` (structured log only).
    """

    kind: str = "log"
    url: str = ""
    token: str = ""
    timeout_seconds: float = 10.0


@dataclass
class KubeConfig:
    """Kubernetes API access."""

    kubeconfig: str = ""
    lookup_timeout_seconds: float = 5.0
    watch_timeout_seconds: int = 300


@dataclass
class StoreConfig:
    """Local store expiry settings. ``0`` disables expiry."""

    event_ttl_seconds: int = 0
    index_ttl_seconds: int = 0
    node_address_ttl_seconds: int = 300
    purge_interval_seconds: int = 60


@dataclass
class HeartbeatConfig:
    """Liveness ping configuration. Disabled when ``url`` is empty."""

    url: str = ""
    interval_seconds: int = 60
    timeout_seconds: float = 5.0


@dataclass
class APIConfig:
    """Health/status HTTP API configuration."""

    enabled: bool = True
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class K8StreamConfig:
    """Top-level k8stream configuration."""

    uid: str = ""
    batch: BatchConfig = field(default_factory=BatchConfig)
    sink: SinkConfig = field(default_factory=SinkConfig)
    kube: KubeConfig = field(default_factory=KubeConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
