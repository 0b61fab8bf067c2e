"""
Entropy module constants.

This module centralizes:
- Digest and seed sizes used by the hash chain and the verifier
- Default chain length and the sample (pebble) stride rule
- Domain tag used when deriving per-chain seeds from a provider secret

Operational knobs live in `entropy.config.EntropyConfig`; code that needs
stable compile-time defaults imports from here.
"""

from __future__ import annotations

# -----------------------------
# Sizes
# -----------------------------
# Keccak-256 output, and the size of every chain element / commitment.
DIGEST_SIZE: int = 32
# Provider seeds and user secrets are digest-sized.
SEED_SIZE: int = 32
SECRET_SIZE: int = 32

# -----------------------------
# Chain defaults
# -----------------------------
DEFAULT_CHAIN_LENGTH: int = 100_000

# Hard cap for a single chain; construction is O(N) hashes up front.
MAX_CHAIN_LENGTH: int = 1 << 32

# Contract sequence numbers start here; the chain's index 0 is the commitment.
FIRST_SEQUENCE_NUMBER: int = 1

# -----------------------------
# Seed derivation
# -----------------------------
# Keep stable; changing it changes every derived chain and commitment.
DOMAIN_CHAIN_SEED: bytes = b"animica.entropy.chain-seed.v1"

# -----------------------------
# HTTP surface
# -----------------------------
API_PREFIX: str = "/v1"
DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8080

__all__ = [
    "DIGEST_SIZE",
    "SEED_SIZE",
    "SECRET_SIZE",
    "DEFAULT_CHAIN_LENGTH",
    "MAX_CHAIN_LENGTH",
    "FIRST_SEQUENCE_NUMBER",
    "DOMAIN_CHAIN_SEED",
    "API_PREFIX",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
]
