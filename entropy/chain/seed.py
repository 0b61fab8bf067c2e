# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Per-chain seed derivation.

A provider keeps one long-lived secret and serves several chains. Each chain
gets its own seed so that a reveal on one chain says nothing about another:

    seed = H( DOMAIN || secret || u32(len(chain_id)) || chain_id
                     || u32(len(provider)) || provider || nonce )

- H is Keccak-256.
- ``nonce`` lets an operator rotate to a fresh chain (explicit
  re-registration) without changing the secret.
"""

from __future__ import annotations

from typing import Union

from ..constants import DOMAIN_CHAIN_SEED, SECRET_SIZE
from ..utils.bytes import as_bytes, ensure_len, u32_prefixed
from ..utils.hash import keccak256_concat

BytesLike = Union[bytes, bytearray, memoryview]


def derive_seed(
    secret: BytesLike,
    chain_id: str,
    provider_id: str,
    *,
    nonce: BytesLike = b"",
) -> bytes:
    """Return the 32-byte chain seed for (secret, chain_id, provider_id, nonce)."""
    secret_b = ensure_len(secret, SECRET_SIZE, name="secret")
    if not chain_id:
        raise ValueError("chain_id must be non-empty")
    if not provider_id:
        raise ValueError("provider_id must be non-empty")
    return keccak256_concat(
        (
            DOMAIN_CHAIN_SEED,
            secret_b,
            u32_prefixed(chain_id.encode("utf-8")),
            u32_prefixed(provider_id.encode("utf-8")),
            as_bytes(nonce),
        )
    )


__all__ = ["derive_seed"]
