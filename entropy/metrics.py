"""
Prometheus metrics for the entropy provider.

Instruments:
  • reveals_total        — revelation lookups per outcome
  • requests_total       — requests accepted by the verifier
  • fulfillments_total   — fulfillment attempts per outcome
  • reveal_seconds       — time spent re-deriving a chain element
  • chain_build_seconds  — one-time chain construction time

Label cardinality stays low: only an `outcome` label with a small, finite
vocabulary. No per-chain or per-provider labels.

Usage
-----
    from entropy.metrics import METRICS

    METRICS.record_reveal("ok")
    with METRICS.reveal_timer():
        chain.reveal(i)

Tests and embedders that need isolation construct their own `Metrics` with a
fresh `CollectorRegistry`.
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter
from typing import Iterable, Iterator

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

# --------- Vocabularies (kept small for bounded cardinality) ---------

_REVEAL_OUTCOMES = (
    "ok",
    "invalid_chain_id",
    "uninitialized",
    "chain_exhausted",
    "internal_unknown",
)

_FULFILL_OUTCOMES = (
    "ok",
    "user_commitment_mismatch",
    "provider_chain_broken",
    "double_fulfillment",
    "not_found",
    "internal_unknown",
)

# Reveal latency: O(K) Keccak calls, sub-millisecond for typical strides.
_REVEAL_BUCKETS = (
    0.0001, 0.00025, 0.0005,
    0.001, 0.0025, 0.005,
    0.01, 0.025, 0.05, 0.1,
)

# Chain construction: O(N) hashes, seconds to minutes for long chains.
_BUILD_BUCKETS = (
    0.1, 0.5, 1.0, 2.5, 5.0,
    10.0, 30.0, 60.0, 120.0, 300.0,
)


class Metrics:
    """
    Container for all entropy Prometheus instruments.

    Args:
        namespace: Prometheus metric namespace (prefix).
        subsystem: Prometheus metric subsystem.
        registry:  Prometheus registry to register the metrics with.
    """

    def __init__(
        self,
        *,
        namespace: str = "animica",
        subsystem: str = "entropy",
        registry: CollectorRegistry = REGISTRY,
        reveal_buckets: Iterable[float] = _REVEAL_BUCKETS,
        build_buckets: Iterable[float] = _BUILD_BUCKETS,
    ) -> None:
        self.registry = registry
        self.reveals_total = Counter(
            "reveals_total",
            "Chain revelation lookups, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.requests_total = Counter(
            "requests_total",
            "Randomness requests accepted by the verifier.",
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.fulfillments_total = Counter(
            "fulfillments_total",
            "Fulfillment attempts processed by the verifier, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.reveal_seconds = Histogram(
            "reveal_seconds",
            "Time spent re-deriving a chain element from the nearest pebble (seconds).",
            buckets=tuple(reveal_buckets),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.chain_build_seconds = Histogram(
            "chain_build_seconds",
            "Time spent constructing a hash chain (seconds).",
            buckets=tuple(build_buckets),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )

    # ----- Recording helpers -------------------------------------------------

    def record_reveal(self, outcome: str) -> None:
        if outcome not in _REVEAL_OUTCOMES:
            outcome = "internal_unknown"
        self.reveals_total.labels(outcome=outcome).inc()

    def record_request(self) -> None:
        self.requests_total.inc()

    def record_fulfillment(self, outcome: str) -> None:
        if outcome not in _FULFILL_OUTCOMES:
            outcome = "internal_unknown"
        self.fulfillments_total.labels(outcome=outcome).inc()

    def observe_chain_build(self, seconds: float) -> None:
        self.chain_build_seconds.observe(float(seconds))

    # ----- Context managers --------------------------------------------------

    @contextmanager
    def reveal_timer(self) -> Iterator[None]:
        start = perf_counter()
        try:
            yield
        finally:
            self.reveal_seconds.observe(perf_counter() - start)

    @contextmanager
    def build_timer(self) -> Iterator[None]:
        start = perf_counter()
        try:
            yield
        finally:
            self.observe_chain_build(perf_counter() - start)


# Singleton used by most components
METRICS = Metrics()

__all__ = [
    "Metrics",
    "METRICS",
    "_REVEAL_OUTCOMES",
    "_FULFILL_OUTCOMES",
]
