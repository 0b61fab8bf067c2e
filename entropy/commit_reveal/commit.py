"""
Requester-side helpers for the commit–reveal flow.

A requester picks a random 32-byte secret, submits only its commitment
``H(secret)`` with the request, and discloses the secret at fulfillment
time. The provider never sees the secret before committing to its own
revelation, so neither side can bias the final output on its own.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Union

from ..constants import SECRET_SIZE
from ..utils.bytes import ensure_len, to_hex
from ..utils.hash import keccak256, user_commitment

BytesLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class UserCommit:
    secret: bytes
    commitment: bytes

    @classmethod
    def from_secret(cls, secret: BytesLike) -> "UserCommit":
        s = ensure_len(secret, SECRET_SIZE, name="user_secret")
        return cls(secret=s, commitment=user_commitment(s))

    def to_public_dict(self) -> dict:
        # The secret stays with the requester until fulfillment.
        return {"user_commitment": to_hex(self.commitment)}

    def __repr__(self) -> str:
        return f"UserCommit(commitment={self.commitment.hex()})"


def new_user_commit() -> UserCommit:
    """Fresh random secret and its commitment."""
    return UserCommit.from_secret(secrets.token_bytes(SECRET_SIZE))


def deterministic_user_secret(sample: int) -> bytes:
    """
    ``H(u64_be(sample))``: reproducible requester secrets for audits and
    simulations. Never use these for real requests.
    """
    if sample < 0:
        raise ValueError("sample must be non-negative")
    return keccak256(sample.to_bytes(8, "big"))


__all__ = ["UserCommit", "new_user_commit", "deterministic_user_secret"]
