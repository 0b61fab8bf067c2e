# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Pebbled Keccak-256 hash chain.

Definition
----------
For a 32-byte secret ``seed`` and a length ``N``:

    d_{N-1} = H(seed)
    d_i     = H(d_{i+1})        for 0 <= i < N-1

so every element is the hash-preimage of the one before it, and ``d_0`` is
the public commitment. Revealing ``d_i`` proves knowledge of it without
disclosing anything about ``d_{i+1} … d_{N-1}``.

Storage
-------
Construction walks the chain once (``N`` hashes) and keeps only the
*pebbles* ``d_{j·K}`` for the stride ``K``. The seed acts as an extra anchor
one step above ``d_{N-1}``. A query for ``d_i`` starts from the closest
anchor at or above ``i`` and hashes down, so it costs at most ``K`` hashes
while memory stays at ``ceil(N/K)`` digests. ``K ≈ √N`` balances the two;
that is the default stride.
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple, Union

from ..constants import MAX_CHAIN_LENGTH, SEED_SIZE
from ..errors import ChainExhausted
from ..utils.bytes import ensure_len
from ..utils.hash import hash_n, keccak256
from .seed import derive_seed

BytesLike = Union[bytes, bytearray, memoryview]


def default_stride(length: int) -> int:
    """Pebble stride minimizing memory + worst-case recomputation: ``isqrt(N)``."""
    if length < 1:
        raise ValueError("length must be >= 1")
    return max(1, math.isqrt(length))


def _check_index(index: int) -> int:
    # bool is an int subclass; reject it explicitly.
    if isinstance(index, bool) or not isinstance(index, int):
        raise TypeError(f"chain index must be an int, got {type(index).__name__}")
    if index < 0:
        raise ValueError("chain index must be non-negative")
    return index


class PebbleHashChain:
    """
    Fixed-length hash chain answering ``reveal(i)`` in O(K) hashes with
    O(N/K) stored digests.

    Instances are immutable once constructed and safe to share between
    threads.
    """

    __slots__ = ("_seed", "_length", "_stride", "_pebbles")

    def __init__(self, seed: BytesLike, length: int, stride: Optional[int] = None) -> None:
        seed_b = ensure_len(seed, SEED_SIZE, name="seed")
        if isinstance(length, bool) or not isinstance(length, int):
            raise TypeError("length must be an int")
        if length < 1:
            raise ValueError("length must be >= 1")
        if length > MAX_CHAIN_LENGTH:
            raise ValueError(f"length must be <= {MAX_CHAIN_LENGTH}")
        if stride is None:
            stride = default_stride(length)
        if isinstance(stride, bool) or not isinstance(stride, int):
            raise TypeError("stride must be an int")
        if stride < 1:
            raise ValueError("stride must be >= 1")

        pebbles: List[bytes] = [b""] * ((length - 1) // stride + 1)
        value = seed_b
        for i in range(length - 1, -1, -1):
            value = keccak256(value)
            if i % stride == 0:
                pebbles[i // stride] = value

        self._seed = seed_b
        self._length = length
        self._stride = stride
        self._pebbles: Tuple[bytes, ...] = tuple(pebbles)

    @classmethod
    def from_secret(
        cls,
        secret: BytesLike,
        chain_id: str,
        provider_id: str,
        length: int,
        stride: Optional[int] = None,
        *,
        nonce: bytes = b"",
    ) -> "PebbleHashChain":
        """Build the chain for ``chain_id`` from a long-lived provider secret."""
        return cls(derive_seed(secret, chain_id, provider_id, nonce=nonce), length, stride)

    # ---- Read API ----

    def __len__(self) -> int:
        return self._length

    @property
    def length(self) -> int:
        return self._length

    @property
    def stride(self) -> int:
        return self._stride

    @property
    def pebble_count(self) -> int:
        return len(self._pebbles)

    @property
    def commitment(self) -> bytes:
        """``d_0``, the value published before any reveal."""
        return self._pebbles[0]

    def reveal(self, index: int) -> bytes:
        """
        Return ``d_index``.

        Raises:
            ChainExhausted: if ``index >= len(self)``.
            TypeError / ValueError: for non-int or negative indices.
        """
        i = _check_index(index)
        if i >= self._length:
            raise ChainExhausted(index=i, length=self._length)
        j = -(-i // self._stride)  # ceil(i / K)
        anchor_index = j * self._stride
        if anchor_index < self._length:
            return hash_n(self._pebbles[j], anchor_index - i)
        # Past the last pebble: the seed sits at virtual index N.
        return hash_n(self._seed, self._length - i)

    def reveal_ith(self, index: int) -> bytes:
        """Alias of :meth:`reveal`."""
        return self.reveal(index)

    def materialize(self) -> List[bytes]:
        """Full list ``[d_0, …, d_{N-1}]`` computed from the seed (O(N) memory)."""
        out: List[bytes] = []
        value = self._seed
        for _ in range(self._length):
            value = keccak256(value)
            out.append(value)
        out.reverse()
        return out

    def __repr__(self) -> str:
        return (
            f"PebbleHashChain(length={self._length}, stride={self._stride}, "
            f"pebbles={len(self._pebbles)}, commitment={self.commitment.hex()})"
        )


__all__ = ["PebbleHashChain", "default_stride"]
