"""Local store contract.

LocalStore -- abstract key/value capability used by the pipeline.
Record     -- a stored entry, returned by ``get``.
StoreError -- raised by backends on I/O failure.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class StoreError(Exception):
    """Raised when the local store cannot complete an operation."""


def make_key(table: str, uid: str) -> str:
    """Return the composite key ``table-uid``."""
    return f"{table}-{uid}"


@dataclass(frozen=True)
class Record:
    """A single stored entry."""

    table: str
    id: str
    payload: bytes
    expires_at: float | None = None

    @property
    def key(self) -> str:
        return make_key(self.table, self.id)

    def json(self) -> Any:
        """Decode the payload as JSON.

        Raises:
            StoreError: if the payload is not valid JSON.
        """
        try:
            return json.loads(self.payload)
        except ValueError as exc:
            raise StoreError(f"record {self.key} is not valid JSON: {exc}") from exc


def encode(value: Any) -> bytes:
    """Encode *value* as compact JSON bytes for storage."""
    return json.dumps(value, separators=(",", ":"), default=str).encode()


class LocalStore(ABC):
    """Embedded key/value cache with per-table prefix indices and TTL.

    Implementations must allow at most one mutating transaction at a time
    and must not let readers observe a write in progress.
    """

    @abstractmethod
    def get(self, table: str, uid: str) -> Record | None:
        """Return the record for ``(table, uid)`` or None when absent or expired."""

    @abstractmethod
    def set(self, table: str, uid: str, value: bytes) -> None:
        """Upsert without expiry."""

    @abstractmethod
    def set_with_ttl(self, table: str, uid: str, value: bytes, ttl_seconds: float) -> None:
        """Upsert with expiry. ``ttl_seconds <= 0`` behaves as :meth:`set`."""

    @abstractmethod
    def list_by_prefix(self, table: str, id_prefix: str = "") -> list[str]:
        """Return the ids in *table* starting with *id_prefix*, sorted."""

    @abstractmethod
    def tables(self) -> list[str]:
        """Return the names of all registered tables."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop expired records and return how many were removed."""

    def close(self) -> None:  # noqa: B027
        """Release backend resources. Further calls raise StoreError."""
