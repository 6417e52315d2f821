"""Local store for k8stream.

Submodules:
    base    -- LocalStore contract, Record, StoreError.
    memory  -- MemoryStore: in-memory ordered map with TTL and prefix indices.
"""

from k8stream.store.base import LocalStore, Record, StoreError, encode, make_key
from k8stream.store.memory import MemoryStore

__all__ = ["LocalStore", "MemoryStore", "Record", "StoreError", "encode", "make_key"]
