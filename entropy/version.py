"""
Version helpers for the Animica Entropy package.

Resolution order:
1) importlib.metadata, when the distribution is installed,
2) the static BASE_VERSION with a ``+src`` local tag (source checkouts).
"""
from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

# Bump together with pyproject.toml.
BASE_VERSION = "0.1.0"

_PKG_NAME = "animica-entropy"


@lru_cache(maxsize=1)
def get_version() -> str:
    try:
        return _pkg_version(_PKG_NAME)
    except PackageNotFoundError:
        return f"{BASE_VERSION}+src"


__version__ = get_version()
__all__ = ["__version__", "get_version", "BASE_VERSION"]
