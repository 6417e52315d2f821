"""Notification variants and the enriched output record."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Operation(StrEnum):
    """Kind of change reported by the watch stream."""

    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class ResourceEvent:
    """A core ``v1.Event`` observed on the watch stream.

    ``obj`` is the raw API object (camelCase keys, as returned by the server).
    """

    obj: dict[str, Any]
    op: Operation

    @property
    def uid(self) -> str:
        return str(self.obj.get("metadata", {}).get("uid", ""))

    @property
    def namespace(self) -> str:
        return str(self.obj.get("metadata", {}).get("namespace", ""))

    @property
    def identity(self) -> str:
        """Events are immutable facts: the raw uid is the identity."""
        return self.uid


@dataclass(frozen=True)
class ServiceChange:
    """A ``v1.Service`` add/update/delete."""

    obj: dict[str, Any]
    op: Operation

    @property
    def uid(self) -> str:
        return str(self.obj.get("metadata", {}).get("uid", ""))

    @property
    def name(self) -> str:
        return str(self.obj.get("metadata", {}).get("name", ""))

    @property
    def namespace(self) -> str:
        return str(self.obj.get("metadata", {}).get("namespace", ""))

    @property
    def resource_version(self) -> str:
        return str(self.obj.get("metadata", {}).get("resourceVersion", ""))

    @property
    def identity(self) -> str:
        """Version-qualified, so every genuine update is a new identity."""
        return f"{self.uid}-{self.resource_version}"

    @property
    def event_type(self) -> str:
        return _SERVICE_EVENT_TYPES[self.op]


Notification = ResourceEvent | ServiceChange

_SERVICE_EVENT_TYPES: dict[Operation, str] = {
    Operation.ADDED: "addedService",
    Operation.UPDATED: "updatedService",
    Operation.DELETED: "deletedService",
}


@dataclass
class EnrichedEvent:
    """Denormalised record placed on the batcher and delivered to the sink."""

    id: str
    timestamp: int
    component: str = ""
    host: str = ""
    message: str = ""
    namespace: str = ""
    reason: str = ""
    reference_uid: str = ""
    reference_namespace: str = ""
    reference_name: str = ""
    reference_kind: str = ""
    reference_version: str = ""
    object_uid: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    address: list[str] = field(default_factory=list)
    pod: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-ready dict, omitting empty fields."""
        out: dict[str, Any] = {}
        for key, value in self.__dict__.items():
            if value in ("", 0, None) or value == {} or value == []:
                continue
            out[key] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnrichedEvent:
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        known.setdefault("id", "")
        known.setdefault("timestamp", 0)
        return cls(**known)
