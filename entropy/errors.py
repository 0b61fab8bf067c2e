# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Entropy provider errors.

A small, typed hierarchy of exceptions raised by the hash chain, the chain
registry and the commit–reveal verifier. Callers can catch the base
`EntropyError` to handle every deterministic failure, or the concrete
subclasses for granular control.

Each class carries:
  • kind        — stable snake_case identifier, safe to return to clients
  • http_status — status hint used by the HTTP surface (`entropy.api`)

Messages never include provider seeds or user secrets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional


class EntropyError(Exception):
    """Base class for all entropy provider errors."""

    kind: ClassVar[str] = "internal_unknown"
    http_status: ClassVar[int] = 500

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": str(self)}


# ---------------------------------------------------------------------------
# Registry / chain lookups
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class InvalidChainId(EntropyError):
    """The chain identifier was never registered with this provider."""

    kind: ClassVar[str] = "invalid_chain_id"
    http_status: ClassVar[int] = 400

    chain_id: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"InvalidChainId: chain_id={self.chain_id!r} is not supported"


@dataclass(eq=False)
class Uninitialized(EntropyError):
    """The chain is registered but its hash chain has not been built yet."""

    kind: ClassVar[str] = "uninitialized"
    http_status: ClassVar[int] = 503

    chain_id: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"Uninitialized: chain_id={self.chain_id!r} is not ready yet"


@dataclass(eq=False)
class AlreadyInitialized(EntropyError):
    """Raised when initializing a chain slot that already holds a chain."""

    kind: ClassVar[str] = "already_initialized"
    http_status: ClassVar[int] = 409

    chain_id: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"AlreadyInitialized: chain_id={self.chain_id!r}"


@dataclass(eq=False)
class ChainExhausted(EntropyError):
    """
    Raised when asking for a chain element at or beyond the chain length.

    Attributes:
        index: The requested chain index.
        length: Number of elements in the chain.
    """

    kind: ClassVar[str] = "chain_exhausted"
    http_status: ClassVar[int] = 400

    index: int
    length: int

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"ChainExhausted: index={self.index} >= length={self.length}"


@dataclass(eq=False)
class InvalidArgument(EntropyError):
    """Malformed client input (bad hex, wrong digest length)."""

    kind: ClassVar[str] = "invalid_argument"
    http_status: ClassVar[int] = 400

    reason: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"InvalidArgument: {self.reason}"


# ---------------------------------------------------------------------------
# Commit–reveal verification
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class UserCommitmentMismatch(EntropyError):
    """H(user_secret) does not match the commitment stored with the request."""

    kind: ClassVar[str] = "user_commitment_mismatch"
    http_status: ClassVar[int] = 400

    provider_id: str
    sequence_number: int

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return (
            f"UserCommitmentMismatch: provider={self.provider_id!r} "
            f"sequence={self.sequence_number}"
        )


@dataclass(eq=False)
class ProviderChainBroken(EntropyError):
    """
    H(provider_revelation) does not equal the provider's last revealed hash.

    Attributes:
        provider_id: Provider whose revelation was rejected.
        sequence_number: Request being fulfilled.
        expected_hex: Hex of the last revealed hash (public value).
        got_hex: Hex of H(provider_revelation).
    """

    kind: ClassVar[str] = "provider_chain_broken"
    http_status: ClassVar[int] = 400

    provider_id: str
    sequence_number: int
    expected_hex: str = ""
    got_hex: str = ""

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return (
            f"ProviderChainBroken: provider={self.provider_id!r} "
            f"sequence={self.sequence_number} expected={self.expected_hex} "
            f"got={self.got_hex}"
        )


@dataclass(eq=False)
class DoubleFulfillment(EntropyError):
    """The request was already fulfilled; state is left untouched."""

    kind: ClassVar[str] = "double_fulfillment"
    http_status: ClassVar[int] = 409

    provider_id: str
    sequence_number: int

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return (
            f"DoubleFulfillment: provider={self.provider_id!r} "
            f"sequence={self.sequence_number}"
        )


@dataclass(eq=False)
class ProviderOrRequestNotFound(EntropyError):
    """Unknown provider, or no request with that sequence number."""

    kind: ClassVar[str] = "not_found"
    http_status: ClassVar[int] = 404

    provider_id: str
    sequence_number: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        if self.sequence_number is None:
            return f"ProviderOrRequestNotFound: provider={self.provider_id!r}"
        return (
            f"ProviderOrRequestNotFound: provider={self.provider_id!r} "
            f"sequence={self.sequence_number}"
        )


@dataclass(eq=False)
class InternalUnknown(EntropyError):
    """Unexpected failure (e.g. malformed stored state)."""

    kind: ClassVar[str] = "internal_unknown"
    http_status: ClassVar[int] = 500

    reason: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return "InternalUnknown" + (f": {self.reason}" if self.reason else "")


__all__ = [
    "EntropyError",
    "InvalidChainId",
    "Uninitialized",
    "AlreadyInitialized",
    "ChainExhausted",
    "UserCommitmentMismatch",
    "ProviderChainBroken",
    "DoubleFulfillment",
    "ProviderOrRequestNotFound",
    "InvalidArgument",
    "InternalUnknown",
]
