"""
Entropy provider — types package

  • core   — ChainId, ProviderId, RequestStatus, ProviderInfo, Request,
             FulfillmentResult
  • state  — ChainState (Uninitialized | Initialized)

Re-exported for convenience:
    from entropy.types import ProviderInfo, Initialized
"""

from __future__ import annotations

from .core import (ChainId, FulfillmentResult, ProviderId, ProviderInfo,
                   Request, RequestStatus)
from .state import UNINITIALIZED, ChainState, Initialized, Uninitialized

__all__ = [
    "ChainId",
    "ProviderId",
    "RequestStatus",
    "ProviderInfo",
    "Request",
    "FulfillmentResult",
    "ChainState",
    "Uninitialized",
    "Initialized",
    "UNINITIALIZED",
]
