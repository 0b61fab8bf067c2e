"""
entropy.commit_reveal
=====================

Two-party commit–reveal verification:

- :mod:`.commit` — requester-side secret/commitment helpers
- :mod:`.verifier` — the per-provider request/fulfill state machine
"""

from .commit import UserCommit, deterministic_user_secret, new_user_commit
from .verifier import CommitRevealVerifier, chain_index_for_sequence

__all__ = [
    "CommitRevealVerifier",
    "chain_index_for_sequence",
    "UserCommit",
    "new_user_commit",
    "deterministic_user_secret",
]
