"""In-memory ordered store.

Each table keeps a sorted list of ids next to the key/value map, so prefix
scans are a bisect plus a linear walk over the matching range. Expired
records are hidden from reads immediately and physically removed by the
next write to the same key or by :meth:`MemoryStore.purge_expired`.
"""

from __future__ import annotations

import bisect
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from k8stream.observability.logging import get_logger
from k8stream.store.base import LocalStore, Record, StoreError, make_key

_log = get_logger("store.memory")


class ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class MemoryStore(LocalStore):
    """Volatile LocalStore backend.

    Args:
        clock: wall-clock source in epoch seconds, used for expiry.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = ReadWriteLock()
        self._items: dict[tuple[str, str], Record] = {}
        # table -> sorted ids
        self._indexes: dict[str, list[str]] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, table: str, uid: str) -> Record | None:
        with self._lock.read():
            self._check_open()
            record = self._items.get((table, uid))
            if record is None or self._expired(record, self._clock()):
                return None
            return record

    def list_by_prefix(self, table: str, id_prefix: str = "") -> list[str]:
        with self._lock.read():
            self._check_open()
            ids = self._indexes.get(table)
            if not ids:
                return []
            now = self._clock()
            out: list[str] = []
            start = bisect.bisect_left(ids, id_prefix)
            for uid in ids[start:]:
                if not uid.startswith(id_prefix):
                    break
                record = self._items.get((table, uid))
                if record is not None and not self._expired(record, now):
                    out.append(uid)
            return out

    def tables(self) -> list[str]:
        with self._lock.read():
            self._check_open()
            return sorted(self._indexes)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, table: str, uid: str, value: bytes) -> None:
        self._put(table, uid, value, None)

    def set_with_ttl(self, table: str, uid: str, value: bytes, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            self._put(table, uid, value, None)
            return
        self._put(table, uid, value, ttl_seconds)

    def _put(self, table: str, uid: str, value: bytes, ttl_seconds: float | None) -> None:
        if not isinstance(value, bytes | bytearray):
            raise StoreError(f"value for {make_key(table, uid)} must be bytes, got {type(value).__name__}")
        with self._lock.write():
            self._check_open()
            ids = self._indexes.get(table)
            if ids is None:
                # Registered inside the write transaction, so concurrent
                # first writers to the same table cannot both create it.
                ids = self._indexes[table] = []
                _log.debug("store_table_registered", table=table)
            key = (table, uid)
            if key not in self._items:
                bisect.insort(ids, uid)
            expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
            self._items[key] = Record(table=table, id=uid, payload=bytes(value), expires_at=expires_at)

    def purge_expired(self) -> int:
        with self._lock.write():
            self._check_open()
            now = self._clock()
            removed = 0
            for table, ids in self._indexes.items():
                kept: list[str] = []
                for uid in ids:
                    key = (table, uid)
                    record = self._items.get(key)
                    if record is not None and self._expired(record, now):
                        del self._items[key]
                        removed += 1
                    else:
                        kept.append(uid)
                ids[:] = kept
            return removed

    def close(self) -> None:
        with self._lock.write():
            self._items.clear()
            self._indexes.clear()
            self._closed = True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise StoreError("store is closed")

    @staticmethod
    def _expired(record: Record, now: float) -> bool:
        return record.expires_at is not None and record.expires_at <= now
