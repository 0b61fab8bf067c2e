# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Revelation service: the provider's read path plus contract fulfillment glue.

Wraps a `ChainRegistry` (and optionally a `CommitRevealVerifier`) and exposes
what the HTTP surface and the CLI need:

- commitment(chain_id)                       → d_0
- reveal(chain_id, index)                    → d_index
- revelation_for_sequence(chain_id, n)       → the value answering request n
- fulfill(chain_id, provider_id, n, secret)  → verifier-checked output

Lookup failures that callers must handle (`InvalidChainId`, `Uninitialized`,
`ChainExhausted`) pass through unchanged. Anything else raised while serving a
lookup is logged and surfaced as `InternalUnknown`; request details stay in
the log, not in the client-facing error.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, TypeVar

from .chain.pebble import PebbleHashChain
from .chain.registry import ChainRegistry
from .commit_reveal.verifier import CommitRevealVerifier, chain_index_for_sequence
from .encoding import BinaryEncoding, Blob
from .errors import ChainExhausted, InternalUnknown, InvalidChainId, Uninitialized
from .metrics import METRICS, Metrics
from .types.core import FulfillmentResult
from .utils.bytes import to_hex

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PASS_THROUGH = (InvalidChainId, Uninitialized, ChainExhausted)


class RevelationService:
    def __init__(
        self,
        registry: ChainRegistry,
        verifier: Optional[CommitRevealVerifier] = None,
        *,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self.registry = registry
        self.verifier = verifier
        self._metrics = metrics or METRICS

    # ---- internals ----

    def _guarded(self, op: str, chain_id: str, fn: Callable[[PebbleHashChain], T]) -> T:
        try:
            return fn(self.registry.require(chain_id))
        except _PASS_THROUGH:
            raise
        except Exception as e:
            logger.error("%s failed for chain %s", op, chain_id, exc_info=True)
            raise InternalUnknown(reason=f"{op} failed") from e

    # ---- reads ----

    def chains(self) -> Dict[str, str]:
        """chain id → "initialized" | "uninitialized"."""
        return self.registry.snapshot()

    def chain_ids(self) -> List[str]:
        return self.registry.chain_ids()

    def commitment(self, chain_id: str) -> bytes:
        return self._guarded("commitment", chain_id, lambda chain: chain.commitment)

    def commitment_hex(self, chain_id: str) -> str:
        return to_hex(self.commitment(chain_id))

    def reveal(self, chain_id: str, index: int) -> bytes:
        """
        ``d_index`` of the chain registered under ``chain_id``.

        Raises:
            InvalidChainId, Uninitialized, ChainExhausted, InternalUnknown
        """
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError("index must be an int")
        if index < 0:
            raise ValueError("index must be non-negative")

        def _reveal(chain: PebbleHashChain) -> bytes:
            with self._metrics.reveal_timer():
                return chain.reveal(index)

        try:
            value = self._guarded("reveal", chain_id, _reveal)
        except (InvalidChainId, Uninitialized, ChainExhausted, InternalUnknown) as e:
            self._metrics.record_reveal(e.kind)
            if isinstance(e, ChainExhausted):
                logger.info("chain %s: index %d is beyond the chain (%d)", chain_id, index, e.length)
            raise
        self._metrics.record_reveal("ok")
        return value

    def reveal_encoded(
        self,
        chain_id: str,
        index: int,
        encoding: BinaryEncoding = BinaryEncoding.HEX,
    ) -> Blob:
        return Blob.encode(self.reveal(chain_id, index), encoding)

    def revelation_for_sequence(self, chain_id: str, sequence_number: int) -> bytes:
        """The chain value that answers contract request ``sequence_number``."""
        return self.reveal(chain_id, chain_index_for_sequence(sequence_number))

    # ---- contract glue ----

    def fulfill(
        self,
        chain_id: str,
        provider_id: str,
        sequence_number: int,
        user_secret: bytes,
    ) -> FulfillmentResult:
        """
        Reveal the value for ``sequence_number`` and submit it to the verifier.

        Verifier errors (mismatch, broken chain, double fulfillment, unknown
        request) propagate unchanged.
        """
        if self.verifier is None:
            raise InternalUnknown(reason="no verifier attached to this service")
        revelation = self.revelation_for_sequence(chain_id, sequence_number)
        return self.verifier.fulfill_result(provider_id, sequence_number, revelation, user_secret)


__all__ = ["RevelationService"]
