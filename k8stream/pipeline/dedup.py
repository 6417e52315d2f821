"""Deduplication gate.

First notification wins: once an identity is recorded in the ``events``
table every later notification carrying it is dropped. Service identities
are version-qualified, so only repeated deliveries of the same version are
suppressed. Store errors propagate to the caller.
"""

from __future__ import annotations

from k8stream.models.events import EnrichedEvent
from k8stream.store.base import LocalStore, encode

EVENTS_TABLE = "events"


def version_at_least(stored: str, incoming: str) -> bool:
    """Return True if resource version *stored* is >= *incoming*.

    Resource versions are opaque strings; the API server emits decimal
    integers in practice, so those are compared numerically.
    """
    if stored.isdigit() and incoming.isdigit():
        return int(stored) >= int(incoming)
    return stored >= incoming


class Deduplicator:
    """Decides whether a notification identity has already been forwarded."""

    def __init__(self, store: LocalStore, ttl_seconds: int = 0) -> None:
        self._store = store
        self._ttl = ttl_seconds

    def already_processed(self, identity: str) -> bool:
        return self._store.get(EVENTS_TABLE, identity) is not None

    def record(self, identity: str, event: EnrichedEvent) -> None:
        """Mark *identity* as forwarded, storing the event that was sent."""
        self._store.set_with_ttl(EVENTS_TABLE, identity, encode(event.to_dict()), self._ttl)

    def stored_version(self, service_uid: str) -> str | None:
        """Return the last forwarded resource version of a service, if any."""
        record = self._store.get(EVENTS_TABLE, service_uid)
        if record is None:
            return None
        data = record.json()
        if not isinstance(data, dict):
            return None
        return str(data.get("reference_version", "")) or None
