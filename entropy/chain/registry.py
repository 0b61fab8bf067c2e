# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Chain registry: chain id → ChainState.

Ownership
---------
Each chain id owns one slot. Until initialization completes the slot is
`Uninitialized` and only the registry touches it; afterwards it holds an
`Initialized(chain)` whose `PebbleHashChain` is immutable and shared by
reference with every reader.

Concurrency
-----------
- Readers (`get`, `require`) take no lock: they read one slot reference,
  which is replaced in a single assignment.
- Writers (`initialize`, `build`) hold the slot's own lock, so chain ids
  never contend with each other. `build` runs the (slow) factory inside the
  slot lock and only publishes on success: no reader observes a half-built
  chain and a failed build leaves the slot `Uninitialized`.
- A registry-level lock guards slot creation only.

Re-initialization policy: rejected with `AlreadyInitialized` unless the
caller passes ``replace=True`` (explicit re-registration).
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

from ..errors import AlreadyInitialized, InvalidChainId, Uninitialized as UninitializedError
from ..metrics import METRICS, Metrics
from ..types.state import UNINITIALIZED, ChainState, Initialized
from .pebble import PebbleHashChain

logger = logging.getLogger(__name__)


class _Slot:
    __slots__ = ("lock", "state")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.state: ChainState = UNINITIALIZED


class ChainRegistry:
    """Concurrent chain id → ChainState store."""

    def __init__(
        self,
        chain_ids: Iterable[str] = (),
        *,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self._slots: Dict[str, _Slot] = {}
        self._lock = threading.Lock()
        self._metrics = metrics or METRICS
        for chain_id in chain_ids:
            self.register(chain_id)

    # ---- Slots ----

    def register(self, chain_id: str) -> None:
        """Create an `Uninitialized` slot for ``chain_id`` (no-op if present)."""
        if not isinstance(chain_id, str) or not chain_id:
            raise ValueError("chain_id must be a non-empty str")
        with self._lock:
            if chain_id not in self._slots:
                self._slots[chain_id] = _Slot()
                logger.debug("registered chain slot %s", chain_id)

    def _slot(self, chain_id: str) -> _Slot:
        slot = self._slots.get(chain_id)
        if slot is None:
            raise InvalidChainId(chain_id=chain_id)
        return slot

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._slots

    def chain_ids(self) -> List[str]:
        return sorted(self._slots)

    # ---- Reads ----

    def get(self, chain_id: str) -> ChainState:
        """
        Current state of ``chain_id``.

        Raises:
            InvalidChainId: the id was never registered.
        """
        return self._slot(chain_id).state

    def require(self, chain_id: str) -> PebbleHashChain:
        """
        The built chain for ``chain_id``.

        Raises:
            InvalidChainId: the id was never registered.
            Uninitialized: the chain is registered but not built yet.
        """
        state = self.get(chain_id)
        if isinstance(state, Initialized):
            return state.chain
        raise UninitializedError(chain_id=chain_id)

    def snapshot(self) -> Dict[str, str]:
        """chain id → "initialized" | "uninitialized"."""
        return {cid: slot.state.describe() for cid, slot in sorted(self._slots.items())}

    # ---- Writes ----

    def initialize(self, chain_id: str, chain: PebbleHashChain, *, replace: bool = False) -> None:
        """
        Publish an already-built chain.

        Raises:
            InvalidChainId: the id was never registered.
            AlreadyInitialized: the slot holds a chain and ``replace`` is False.
        """
        if not isinstance(chain, PebbleHashChain):
            raise TypeError("chain must be a PebbleHashChain")
        slot = self._slot(chain_id)
        with slot.lock:
            self._publish(chain_id, slot, chain, replace=replace)

    def build(
        self,
        chain_id: str,
        factory: Callable[[], PebbleHashChain],
        *,
        replace: bool = False,
    ) -> PebbleHashChain:
        """
        Build and publish a chain as one exclusive step.

        ``factory`` runs while the slot lock is held; if it raises, the slot
        keeps its previous state and the exception propagates.
        """
        slot = self._slot(chain_id)
        with slot.lock:
            if isinstance(slot.state, Initialized) and not replace:
                raise AlreadyInitialized(chain_id=chain_id)
            logger.info("building hash chain for %s", chain_id)
            try:
                with self._metrics.build_timer():
                    chain = factory()
            except Exception:
                logger.error("hash chain build failed for %s", chain_id, exc_info=True)
                raise
            self._publish(chain_id, slot, chain, replace=replace)
            return chain

    def _publish(self, chain_id: str, slot: _Slot, chain: PebbleHashChain, *, replace: bool) -> None:
        # Caller holds slot.lock.
        if isinstance(slot.state, Initialized) and not replace:
            raise AlreadyInitialized(chain_id=chain_id)
        slot.state = Initialized(chain)
        logger.info(
            "chain %s initialized: length=%d stride=%d commitment=%s",
            chain_id,
            len(chain),
            chain.stride,
            chain.commitment.hex(),
        )


__all__ = ["ChainRegistry"]
