"""
entropy.store
=============

Storage backends for verifier state (provider counters, last revealed
hashes, open and fulfilled requests) so verification can resume after a
restart.

Backends are pluggable (in-memory, SQLite). This module exposes the small
typing protocol higher layers depend on, plus `open_kv` to pick a backend
from a URI:

    memory://              → MemoryKeyValue
    sqlite:///path/to.db   → SQLiteKeyValue

Only bytes go in and out; callers perform their own encoding.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Tuple


class KeyValue(Protocol):
    """Minimal byte-oriented KV interface."""

    def get(self, key: bytes) -> Optional[bytes]:
        """Return value for key, or None if missing."""
        ...

    def put(self, key: bytes, value: bytes) -> None:
        """Insert or replace key with value."""
        ...

    def delete(self, key: bytes) -> None:
        """Remove key if present (no-op if absent)."""
        ...

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs whose keys start with prefix, in key order."""
        ...


def open_kv(uri: str) -> KeyValue:
    """Open a KeyValue backend from a ``memory://`` or ``sqlite:///…`` URI."""
    if uri in ("memory://", "memory:", "memory"):
        from .memory import MemoryKeyValue

        return MemoryKeyValue()
    if uri.startswith("sqlite:///"):
        from .sqlite import SQLiteKeyValue

        return SQLiteKeyValue(uri[len("sqlite:///"):])
    raise ValueError(f"unsupported storage URI: {uri!r} (expected memory:// or sqlite:///path)")


__all__ = ["KeyValue", "open_kv"]
