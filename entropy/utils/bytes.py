# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
entropy.utils.bytes
===================

Hex/bytes conversion plus strict **length guards** for 32-byte digests.

Highlights
----------
- :func:`to_hex` / :func:`from_hex` with strict validation (optional ``0x``).
- :func:`parse_digest` normalizes hex strings or bytes into a 32-byte value.
- :func:`consteq` timing-safe equality (hmac.compare_digest).
- :func:`u32_prefixed` length framing for unambiguous concatenation.
"""

from __future__ import annotations

import hmac
import re
from typing import Union

from ..constants import DIGEST_SIZE

BytesLike = Union[bytes, bytearray, memoryview]

__all__ = [
    "to_hex",
    "from_hex",
    "is_hex",
    "as_bytes",
    "ensure_len",
    "parse_digest",
    "consteq",
    "u32_prefixed",
]

_HEX_RE = re.compile(r"^(?:0[xX])?[0-9a-fA-F]*$")


def is_hex(s: str) -> bool:
    """True if *s* is even-length hex, with or without a ``0x`` prefix."""
    if not isinstance(s, str) or not _HEX_RE.match(s):
        return False
    body = s[2:] if s.startswith(("0x", "0X")) else s
    return len(body) % 2 == 0


def from_hex(s: str) -> bytes:
    """
    Convert a hex string (optional ``0x``) to bytes.

    No whitespace, only hex digits, even number of nibbles.
    """
    if not isinstance(s, str):
        raise TypeError("from_hex expects a str")
    if not _HEX_RE.match(s):
        raise ValueError("invalid hex string (characters or whitespace)")
    body = s[2:] if s.startswith(("0x", "0X")) else s
    if len(body) % 2 != 0:
        raise ValueError("hex string must have an even number of nibbles")
    return bytes.fromhex(body)


def to_hex(b: BytesLike, *, prefix: str = "") -> str:
    """Lowercase hex. No prefix by default, matching the commitment wire format."""
    return (prefix or "") + as_bytes(b).hex()


def as_bytes(x: BytesLike) -> bytes:
    """Normalize bytes-like to immutable :class:`bytes`."""
    if isinstance(x, bytes):
        return x
    if isinstance(x, (bytearray, memoryview)):
        return bytes(x)
    raise TypeError(f"expected bytes-like, got {type(x)!r}")


def ensure_len(b: BytesLike, expected: int, *, name: str = "value") -> bytes:
    """Ensure ``len(b) == expected``; returns bytes, raises ValueError otherwise."""
    bb = as_bytes(b)
    if len(bb) != expected:
        raise ValueError(f"{name} must be {expected} bytes, got {len(bb)}")
    return bb


def parse_digest(value: Union[BytesLike, str], *, name: str = "digest") -> bytes:
    """
    Normalize a digest-sized value into 32 raw bytes.

    Accepts bytes-like values or hex strings with/without ``0x``.
    """
    raw = from_hex(value) if isinstance(value, str) else as_bytes(value)
    return ensure_len(raw, DIGEST_SIZE, name=name)


def consteq(a: BytesLike, b: BytesLike) -> bool:
    """Timing-safe equality for two bytes-like values."""
    return hmac.compare_digest(as_bytes(a), as_bytes(b))


def u32_prefixed(part: BytesLike) -> bytes:
    """``u32_be(len(part)) || part``."""
    bb = as_bytes(part)
    if len(bb) > 0xFFFFFFFF:
        raise ValueError("part too long for u32 length prefix")
    return len(bb).to_bytes(4, "big") + bb
