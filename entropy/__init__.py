"""
Animica Entropy package.

Hash-chain entropy provider: a provider commits to the head of a long
Keccak-256 hash chain, then reveals chain elements one by one; each reveal is
mixed with a requester's own committed secret so neither side can bias the
final value.

Only light, stable exports are surfaced here to avoid import cycles.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
