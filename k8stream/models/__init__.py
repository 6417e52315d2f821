"""Core data structures for k8stream."""

from k8stream.models.config import K8StreamConfig
from k8stream.models.events import (
    EnrichedEvent,
    Notification,
    Operation,
    ResourceEvent,
    ServiceChange,
)

__all__ = [
    "EnrichedEvent",
    "K8StreamConfig",
    "Notification",
    "Operation",
    "ResourceEvent",
    "ServiceChange",
]
