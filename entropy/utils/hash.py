# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
entropy.utils.hash
==================

Keccak-256 helpers used by the hash chain and the commit–reveal verifier.

Keccak-256 here is the pre-standard variant used by EVM contracts (the one
behind Solidity's ``keccak256``), not NIST SHA3-256 from :mod:`hashlib`; the
two differ in padding and produce different digests. It is provided by
pycryptodome's :mod:`Crypto.Hash.keccak`.

Key pieces
----------
- :func:`keccak256`: one-shot digest of a bytes-like value.
- :func:`keccak256_concat`: digest of the concatenation of several parts.
- :func:`hash_n`: apply keccak256 repeatedly (chain walking).
- :func:`combine`: the final output ``H(user_secret || provider_revelation)``.
- :func:`user_commitment`: ``H(user_secret)``, what a requester submits.
"""

from __future__ import annotations

from typing import Iterable, Union

from Crypto.Hash import keccak as _keccak

BytesLike = Union[bytes, bytearray, memoryview]

__all__ = [
    "keccak256",
    "keccak256_concat",
    "hash_n",
    "combine",
    "user_commitment",
]


def keccak256(data: BytesLike) -> bytes:
    """Return Keccak-256(data)."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("keccak256 expects a bytes-like object")
    h = _keccak.new(digest_bits=256)
    h.update(bytes(data))
    return h.digest()


def keccak256_concat(parts: Iterable[BytesLike]) -> bytes:
    """Keccak-256 over the plain concatenation of *parts* (no framing)."""
    h = _keccak.new(digest_bits=256)
    for p in parts:
        if not isinstance(p, (bytes, bytearray, memoryview)):
            raise TypeError("all parts must be bytes-like")
        h.update(bytes(p))
    return h.digest()


def hash_n(value: bytes, times: int) -> bytes:
    """Apply keccak256 to *value* ``times`` times (``times == 0`` returns it unchanged)."""
    if times < 0:
        raise ValueError("times must be non-negative")
    for _ in range(times):
        value = keccak256(value)
    return value


def combine(user_secret: BytesLike, provider_revelation: BytesLike) -> bytes:
    """
    Final random output for a fulfilled request.

    The order is fixed: user secret first, provider revelation second. It must
    match bit-for-bit between the provider tooling and any verifier.
    """
    return keccak256_concat((user_secret, provider_revelation))


def user_commitment(user_secret: BytesLike) -> bytes:
    """Commitment a requester submits with its request: ``H(user_secret)``."""
    return keccak256(user_secret)
