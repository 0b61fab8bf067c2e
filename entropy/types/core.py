from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NewType, Optional

"""
Core typed primitives for the entropy provider.

These are intentionally minimal so they can be shared across the verifier,
the persistence layer, the HTTP surface and tests.

Types provided:
  • ChainId / ProviderId — string identifiers
  • RequestStatus        — OPEN → FULFILLED (exactly once)
  • ProviderInfo         — per-provider counter and last revealed hash
  • Request              — one requester commitment awaiting a reveal
  • FulfillmentResult    — what a successful fulfillment produced
"""

# ---- Simple newtypes ---------------------------------------------------------

ChainId = NewType("ChainId", str)
ProviderId = NewType("ProviderId", str)

_HASH32 = 32


def _require_len(name: str, b: bytes, n: int) -> None:
    if len(b) != n:
        raise ValueError(f"{name} must be exactly {n} bytes (got {len(b)})")


def _require_nonneg(name: str, v: int) -> None:
    if v < 0:
        raise ValueError(f"{name} must be non-negative (got {v})")


class RequestStatus(str, Enum):
    OPEN = "open"
    FULFILLED = "fulfilled"


# ---- Records -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProviderInfo:
    """
    Verifier-side view of one provider.

    Fields:
      provider_id            — caller-supplied provider identifier
      sequence_number        — last assigned sequence number (0 = none yet)
      commitment             — d_0 registered by the provider
      last_revealed_hash     — starts at `commitment`, advances per fulfillment
      last_revealed_sequence — sequence whose reveal set `last_revealed_hash`
    """

    provider_id: str
    sequence_number: int
    commitment: bytes
    last_revealed_hash: bytes
    last_revealed_sequence: int = 0

    def __post_init__(self) -> None:  # type: ignore[override]
        if not isinstance(self.sequence_number, int):
            raise TypeError("sequence_number must be an int")
        _require_nonneg("sequence_number", self.sequence_number)
        _require_nonneg("last_revealed_sequence", self.last_revealed_sequence)
        _require_len("commitment", self.commitment, _HASH32)
        _require_len("last_revealed_hash", self.last_revealed_hash, _HASH32)

    @classmethod
    def fresh(cls, provider_id: str, commitment: bytes) -> "ProviderInfo":
        return cls(
            provider_id=provider_id,
            sequence_number=0,
            commitment=bytes(commitment),
            last_revealed_hash=bytes(commitment),
        )


@dataclass(frozen=True, slots=True)
class Request:
    """
    A requester's commitment bound to (provider, sequence_number).

    Fields:
      provider_id     — provider the request targets
      sequence_number — assigned by the verifier, starting at 1
      user_commitment — H(user_secret), 32 bytes
      requester       — optional opaque requester identity
      status          — OPEN until a successful fulfillment
      output          — final random value once FULFILLED
    """

    provider_id: str
    sequence_number: int
    user_commitment: bytes
    requester: Optional[str] = None
    status: RequestStatus = RequestStatus.OPEN
    output: Optional[bytes] = None

    def __post_init__(self) -> None:  # type: ignore[override]
        if not isinstance(self.sequence_number, int):
            raise TypeError("sequence_number must be an int")
        if self.sequence_number < 1:
            raise ValueError("sequence_number must be >= 1")
        _require_len("user_commitment", self.user_commitment, _HASH32)
        if self.status is RequestStatus.FULFILLED:
            if self.output is None:
                raise ValueError("fulfilled request must carry its output")
            _require_len("output", self.output, _HASH32)

    @property
    def is_open(self) -> bool:
        return self.status is RequestStatus.OPEN


@dataclass(frozen=True, slots=True)
class FulfillmentResult:
    """Outcome of a successful fulfillment."""

    provider_id: str
    sequence_number: int
    provider_revelation: bytes
    output: bytes


__all__ = [
    "ChainId",
    "ProviderId",
    "RequestStatus",
    "ProviderInfo",
    "Request",
    "FulfillmentResult",
]
