# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Entropy provider HTTP server.

Builds the FastAPI app with:
  - /v1/...        provider + contract-simulation routes (see `entropy.api`)
  - /metrics       Prometheus text exposition
  - /healthz       liveness plus per-chain readiness

Chains are registered up front and built either synchronously or in one
worker thread per chain. Until a chain is built its routes answer 503
(`uninitialized`), so the server can accept connections immediately even for
long chains.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api import mount_entropy_api
from .chain.pebble import PebbleHashChain
from .chain.registry import ChainRegistry
from .commit_reveal.verifier import CommitRevealVerifier
from .config import EntropyConfig
from .metrics import METRICS, Metrics
from .service import RevelationService
from .store import open_kv
from .store.verifier_store import VerifierStore
from .version import __version__

logger = logging.getLogger(__name__)


def build_chain(config: EntropyConfig, chain_id: str) -> PebbleHashChain:
    p = config.provider
    return PebbleHashChain.from_secret(
        p.secret,
        chain_id,
        p.address,
        p.chain_length,
        p.effective_stride(),
    )


def _build_one(registry: ChainRegistry, config: EntropyConfig, chain_id: str) -> None:
    try:
        registry.build(chain_id, lambda: build_chain(config, chain_id))
    except Exception:
        # Already logged with traceback by the registry; the chain keeps
        # answering 503 until an operator restarts the provider.
        logger.error("chain %s left uninitialized", chain_id)


def build_chains(
    registry: ChainRegistry,
    config: EntropyConfig,
    *,
    background: Optional[bool] = None,
) -> List[threading.Thread]:
    """
    Build every configured chain.

    With ``background`` (defaults to ``config.server.build_in_background``)
    each chain gets a daemon thread and the started threads are returned;
    otherwise chains are built in order and failures propagate.
    """
    if background is None:
        background = config.server.build_in_background
    if not background:
        for chain_id in config.chain_ids:
            registry.build(chain_id, lambda cid=chain_id: build_chain(config, cid))
        return []
    threads = []
    for chain_id in config.chain_ids:
        t = threading.Thread(
            target=_build_one,
            args=(registry, config, chain_id),
            name=f"entropy-build-{chain_id}",
            daemon=True,
        )
        t.start()
        threads.append(t)
    return threads


def create_app(
    config: EntropyConfig,
    *,
    metrics: Optional[Metrics] = None,
    verifier: Optional[CommitRevealVerifier] = None,
) -> FastAPI:
    """
    Wire registry, verifier and service into a FastAPI app and kick off
    chain construction.
    """
    config.validate()
    metrics = metrics or METRICS

    registry = ChainRegistry(config.chain_ids, metrics=metrics)
    if verifier is None:
        store = VerifierStore(open_kv(config.storage.verifier_uri))
        verifier = CommitRevealVerifier.restore(store, metrics=metrics)
    service = RevelationService(registry, verifier, metrics=metrics)

    app = FastAPI(title="Animica Entropy Provider", version=__version__)
    app.state.entropy_service = service
    app.state.entropy_registry = registry
    app.state.entropy_verifier = verifier
    mount_entropy_api(app, service, verifier=verifier)

    @app.get("/healthz")
    def healthz() -> dict:
        return {"ok": True, "version": __version__, "chains": registry.snapshot()}

    @app.get("/metrics")
    def prometheus_metrics() -> Response:
        return Response(content=generate_latest(metrics.registry), media_type=CONTENT_TYPE_LATEST)

    config.log_summary(logger)
    app.state.entropy_build_threads = build_chains(registry, config)
    return app


def serve(config: EntropyConfig) -> None:
    """Run the provider under uvicorn (blocking)."""
    import uvicorn

    app = create_app(config)
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.log_level.lower(),
        workers=1,
    )


__all__ = ["create_app", "build_chain", "build_chains", "serve"]
