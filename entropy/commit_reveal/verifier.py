# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Commit–reveal verifier (in-memory mirror of the on-chain entropy contract).

State machine per (provider, sequence_number)
---------------------------------------------
    request(user_commitment)         →  OPEN
    fulfill(revelation, user_secret) →  FULFILLED   (exactly once)

`fulfill` checks, in order:
  1. the request exists and is still OPEN (else ProviderOrRequestNotFound /
     DoubleFulfillment),
  2. H(user_secret) == stored user_commitment (else UserCommitmentMismatch),
  3. H(provider_revelation) == provider.last_revealed_hash (else
     ProviderChainBroken): the revelation must be the preimage of the
     previously revealed hash, i.e. the next element of the pre-published
     chain,
and only then advances ``last_revealed_hash``, marks the request FULFILLED
and returns ``H(user_secret || provider_revelation)``. A failed check leaves
every field untouched.

Indexing
--------
Sequence numbers start at 1. Chain index 0 is the registered commitment, so
sequence ``n`` is answered with chain index ``n``
(see :func:`chain_index_for_sequence`).

Concurrency
-----------
Each provider has one exclusive section (a lock held across the whole
read-verify-write step). Different providers never contend. The
verifier-level lock only guards adding or replacing provider slots.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator, List, Optional, Union

from ..constants import FIRST_SEQUENCE_NUMBER
from ..errors import (DoubleFulfillment, EntropyError, InternalUnknown,
                      ProviderChainBroken, ProviderOrRequestNotFound,
                      UserCommitmentMismatch)
from ..metrics import METRICS, Metrics
from ..store.verifier_store import VerifierStore
from ..types.core import FulfillmentResult, ProviderInfo, Request, RequestStatus
from ..utils.bytes import consteq, parse_digest
from ..utils.hash import combine, keccak256

logger = logging.getLogger(__name__)

DigestLike = Union[bytes, bytearray, memoryview, str]


def chain_index_for_sequence(sequence_number: int) -> int:
    """Chain index that answers request ``sequence_number`` (index 0 is the commitment)."""
    if isinstance(sequence_number, bool) or not isinstance(sequence_number, int):
        raise TypeError("sequence_number must be an int")
    if sequence_number < FIRST_SEQUENCE_NUMBER:
        raise ValueError(f"sequence_number must be >= {FIRST_SEQUENCE_NUMBER}")
    return sequence_number


class _ProviderSlot:
    __slots__ = ("lock", "info", "requests", "retired")

    def __init__(self, info: ProviderInfo) -> None:
        self.lock = threading.Lock()
        self.info = info
        self.requests: Dict[int, Request] = {}
        self.retired = False


class CommitRevealVerifier:
    """
    Per-provider commit–reveal state machine.

    Parameters
    ----------
    store : VerifierStore, optional
        When given, every successful mutation is written through before it
        becomes visible in memory. Use :meth:`restore` to resume.
    metrics : Metrics, optional
        Prometheus instruments (defaults to the module singleton).
    """

    def __init__(self, *, store: Optional[VerifierStore] = None, metrics: Optional[Metrics] = None) -> None:
        self._providers: Dict[str, _ProviderSlot] = {}
        self._lock = threading.Lock()
        self._store = store
        self._metrics = metrics or METRICS

    @classmethod
    def restore(cls, store: VerifierStore, *, metrics: Optional[Metrics] = None) -> "CommitRevealVerifier":
        """Rebuild providers and requests from ``store``."""
        v = cls(store=store, metrics=metrics)
        n_requests = 0
        for info in store.iter_providers():
            slot = _ProviderSlot(info)
            for req in store.iter_requests(info.provider_id):
                if req.sequence_number > info.sequence_number:
                    raise InternalUnknown(
                        reason=(
                            f"stored request {req.sequence_number} for provider "
                            f"{info.provider_id!r} is ahead of its counter {info.sequence_number}"
                        )
                    )
                slot.requests[req.sequence_number] = req
                n_requests += 1
            v._providers[info.provider_id] = slot
        logger.info("restored verifier state: providers=%d requests=%d", len(v._providers), n_requests)
        return v

    # ---- exclusive section ----

    @contextmanager
    def _exclusive(self, provider_id: str) -> Iterator[_ProviderSlot]:
        while True:
            slot = self._providers.get(provider_id)
            if slot is None:
                raise ProviderOrRequestNotFound(provider_id=provider_id)
            slot.lock.acquire()
            if not slot.retired:
                break
            # Replaced by a concurrent re-registration; retry on the new slot.
            slot.lock.release()
        try:
            yield slot
        finally:
            slot.lock.release()

    def _persist(self, info: ProviderInfo, req: Optional[Request]) -> None:
        if self._store is not None:
            self._store.save(info, req)

    # ---- operations ----

    def register(self, provider_id: str, commitment: DigestLike) -> ProviderInfo:
        """
        Register ``provider_id`` with its chain commitment ``d_0``.

        Registering an existing provider again replaces its state and drops
        its requests (explicit re-registration).
        """
        if not isinstance(provider_id, str) or not provider_id:
            raise ValueError("provider_id must be a non-empty str")
        info = ProviderInfo.fresh(provider_id, parse_digest(commitment, name="commitment"))
        with self._lock:
            old = self._providers.get(provider_id)
            if old is None:
                if self._store is not None:
                    self._store.reset_provider(info)
                self._providers[provider_id] = _ProviderSlot(info)
            else:
                with old.lock:
                    if self._store is not None:
                        self._store.reset_provider(info)
                    old.retired = True
                    self._providers[provider_id] = _ProviderSlot(info)
                logger.warning("provider %s re-registered; previous requests discarded", provider_id)
        logger.info("provider %s registered with commitment %s", provider_id, info.commitment.hex())
        return info

    def request(
        self,
        provider_id: str,
        user_commitment: DigestLike,
        requester: Optional[str] = None,
    ) -> int:
        """Open a request against ``provider_id``; returns its sequence number (1, 2, …)."""
        commitment = parse_digest(user_commitment, name="user_commitment")
        with self._exclusive(provider_id) as slot:
            seq = slot.info.sequence_number + 1
            info = replace(slot.info, sequence_number=seq)
            req = Request(
                provider_id=provider_id,
                sequence_number=seq,
                user_commitment=commitment,
                requester=requester,
            )
            self._persist(info, req)
            slot.info = info
            slot.requests[seq] = req
        self._metrics.record_request()
        logger.debug("provider %s: request %d opened (requester=%s)", provider_id, seq, requester)
        return seq

    def fulfill(
        self,
        provider_id: str,
        sequence_number: int,
        provider_revelation: DigestLike,
        user_secret: DigestLike,
    ) -> bytes:
        """
        Verify both secrets and return the final random value.

        Raises:
            ProviderOrRequestNotFound, DoubleFulfillment,
            UserCommitmentMismatch, ProviderChainBroken
        """
        return self.fulfill_result(provider_id, sequence_number, provider_revelation, user_secret).output

    def fulfill_result(
        self,
        provider_id: str,
        sequence_number: int,
        provider_revelation: DigestLike,
        user_secret: DigestLike,
    ) -> FulfillmentResult:
        """Like :meth:`fulfill` but returns the full `FulfillmentResult`."""
        revelation = parse_digest(provider_revelation, name="provider_revelation")
        secret = parse_digest(user_secret, name="user_secret")
        try:
            output = self._fulfill(provider_id, sequence_number, revelation, secret)
        except EntropyError as e:
            self._metrics.record_fulfillment(e.kind)
            logger.info(
                "provider %s: fulfillment of %s rejected (%s)", provider_id, sequence_number, e.kind
            )
            raise
        self._metrics.record_fulfillment("ok")
        logger.debug("provider %s: request %d fulfilled", provider_id, sequence_number)
        return FulfillmentResult(
            provider_id=provider_id,
            sequence_number=sequence_number,
            provider_revelation=revelation,
            output=output,
        )

    def _fulfill(self, provider_id: str, seq: int, revelation: bytes, secret: bytes) -> bytes:
        with self._exclusive(provider_id) as slot:
            req = slot.requests.get(seq)
            if req is None:
                raise ProviderOrRequestNotFound(provider_id=provider_id, sequence_number=seq)
            if not req.is_open:
                raise DoubleFulfillment(provider_id=provider_id, sequence_number=seq)

            if not consteq(keccak256(secret), req.user_commitment):
                raise UserCommitmentMismatch(provider_id=provider_id, sequence_number=seq)

            got = keccak256(revelation)
            if not consteq(got, slot.info.last_revealed_hash):
                raise ProviderChainBroken(
                    provider_id=provider_id,
                    sequence_number=seq,
                    expected_hex=slot.info.last_revealed_hash.hex(),
                    got_hex=got.hex(),
                )

            output = combine(secret, revelation)
            info = replace(slot.info, last_revealed_hash=revelation, last_revealed_sequence=seq)
            done = replace(req, status=RequestStatus.FULFILLED, output=output)
            self._persist(info, done)
            slot.info = info
            slot.requests[seq] = done
            return output

    # ---- reads ----

    def providers(self) -> List[str]:
        return sorted(self._providers)

    def provider_info(self, provider_id: str) -> ProviderInfo:
        slot = self._providers.get(provider_id)
        if slot is None:
            raise ProviderOrRequestNotFound(provider_id=provider_id)
        return slot.info

    def get_request(self, provider_id: str, sequence_number: int) -> Request:
        slot = self._providers.get(provider_id)
        req = None if slot is None else slot.requests.get(sequence_number)
        if req is None:
            raise ProviderOrRequestNotFound(provider_id=provider_id, sequence_number=sequence_number)
        return req

    def open_requests(self, provider_id: str) -> List[Request]:
        with self._exclusive(provider_id) as slot:
            reqs = [r for r in slot.requests.values() if r.is_open]
        return sorted(reqs, key=lambda r: r.sequence_number)


__all__ = ["CommitRevealVerifier", "chain_index_for_sequence"]
