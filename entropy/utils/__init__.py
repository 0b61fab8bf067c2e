"""
entropy.utils
-------------

Hashing and byte helpers shared by the chain, the verifier and the HTTP
surface. Import from the concrete submodules:

    from entropy.utils.hash import keccak256, combine
    from entropy.utils.bytes import to_hex, from_hex, consteq
"""

from __future__ import annotations

__all__: tuple[str, ...] = ()
