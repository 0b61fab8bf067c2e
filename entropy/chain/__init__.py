# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
entropy.chain
=============

Hash chain construction and storage.

    - pebble.py   : PebbleHashChain, the sparse-checkpoint chain.
    - seed.py     : per-chain seed derivation from a provider secret.
    - registry.py : ChainRegistry, chain id → ChainState.

The registry is imported from its own module (``entropy.chain.registry``)
to keep this package free of import cycles with ``entropy.types``.
"""

from __future__ import annotations

from .pebble import PebbleHashChain, default_stride
from .seed import derive_seed

__all__ = ["PebbleHashChain", "default_stride", "derive_seed"]
