from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..chain.pebble import PebbleHashChain


@dataclass(frozen=True, slots=True)
class Uninitialized:
    """The chain id is registered but its hash chain is not built yet."""

    def describe(self) -> str:
        return "uninitialized"


@dataclass(frozen=True, slots=True)
class Initialized:
    """The chain id holds a built, immutable hash chain."""

    chain: PebbleHashChain

    def describe(self) -> str:
        return "initialized"


# Closed set of chain states; dispatch with isinstance, never subclass.
ChainState = Union[Uninitialized, Initialized]

UNINITIALIZED = Uninitialized()


__all__ = ["ChainState", "Uninitialized", "Initialized", "UNINITIALIZED"]
