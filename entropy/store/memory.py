"""
In-memory KeyValue store.

Default backend for tests and single-process runs where verifier state does
not need to outlive the process.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Tuple


class MemoryKeyValue:
    """Dict-backed KeyValue with prefix iteration in key order."""

    def __init__(self) -> None:
        self._d: Dict[bytes, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: bytes) -> Optional[bytes]:
        return self._d.get(bytes(key))

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        with self._lock:
            self._d[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._d.pop(bytes(key), None)

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        with self._lock:
            items: List[Tuple[bytes, bytes]] = sorted(
                (k, v) for k, v in self._d.items() if k.startswith(prefix)
            )
        return iter(items)

    def __len__(self) -> int:
        return len(self._d)

    def close(self) -> None:
        pass


__all__ = ["MemoryKeyValue"]
