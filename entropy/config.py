"""
Entropy provider configuration.

This file defines typed configuration objects and helpers for:
- The provider identity, its long-lived secret and chain parameters
- The set of chain ids the provider serves
- HTTP server binding and chain build mode
- Storage URI for verifier state

It provides:
- Dataclass-based configs with validation
- Loading from environment variables (prefix configurable)
- Loading from a JSON or YAML file
- Redacted serialization (the secret never leaves `ProviderConfig`)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .chain.pebble import default_stride
from .constants import (DEFAULT_CHAIN_LENGTH, DEFAULT_HOST, DEFAULT_PORT,
                        MAX_CHAIN_LENGTH, SECRET_SIZE)
from .utils.bytes import from_hex, is_hex

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
_REDACTED = "<redacted>"


# -------------------------
# Sub-configs
# -------------------------


@dataclass
class ProviderConfig:
    """
    Provider identity and hash chain parameters.

    address: provider identifier; also mixed into every chain seed
    secret_hex: 32-byte long-lived secret (hex, optional 0x). Never logged.
    chain_length: number of elements per chain (N)
    chain_sample_interval: pebble stride K; None → isqrt(chain_length)
    """

    address: str = "provider"
    secret_hex: str = ""
    chain_length: int = DEFAULT_CHAIN_LENGTH
    chain_sample_interval: Optional[int] = None

    def validate(self) -> None:
        if not self.address:
            raise ValueError("provider.address must be non-empty")
        if not is_hex(self.secret_hex) or len(from_hex(self.secret_hex)) != SECRET_SIZE:
            raise ValueError(f"provider.secret_hex must be {SECRET_SIZE} bytes of hex")
        if not 1 <= self.chain_length <= MAX_CHAIN_LENGTH:
            raise ValueError(f"provider.chain_length must be in [1, {MAX_CHAIN_LENGTH}]")
        if self.chain_sample_interval is not None and self.chain_sample_interval < 1:
            raise ValueError("provider.chain_sample_interval must be >= 1")

    @property
    def secret(self) -> bytes:
        return from_hex(self.secret_hex)

    def effective_stride(self) -> int:
        if self.chain_sample_interval is None:
            return default_stride(self.chain_length)
        return self.chain_sample_interval


@dataclass
class ChainConfig:
    chain_id: str

    def validate(self) -> None:
        if not self.chain_id:
            raise ValueError("chain_id must be non-empty")


@dataclass
class ServerConfig:
    """
    host/port: HTTP bind address
    build_in_background: build chains in worker threads after startup
                         (chains answer 503 until ready) instead of blocking
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    build_in_background: bool = True

    def validate(self) -> None:
        if not self.host:
            raise ValueError("server.host must be non-empty")
        if not 0 < self.port < 65536:
            raise ValueError("server.port must be in (0, 65536)")


@dataclass
class StorageConfig:
    """verifier_uri: `memory://` or `sqlite:///path/to/verifier.db`."""

    verifier_uri: str = "memory://"

    def validate(self) -> None:
        if self.verifier_uri in ("memory://", "memory:", "memory"):
            return
        if self.verifier_uri.startswith("sqlite:///") and len(self.verifier_uri) > len("sqlite:///"):
            return
        raise ValueError(f"Unsupported storage.verifier_uri: {self.verifier_uri!r}")


# -------------------------
# Top-level config
# -------------------------


@dataclass
class EntropyConfig:
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    chains: List[ChainConfig] = field(default_factory=list)
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "INFO"

    def validate(self) -> None:
        self.provider.validate()
        self.server.validate()
        self.storage.validate()
        if not self.chains:
            raise ValueError("at least one chain must be configured")
        seen = set()
        for c in self.chains:
            c.validate()
            if c.chain_id in seen:
                raise ValueError(f"duplicate chain_id: {c.chain_id!r}")
            seen.add(c.chain_id)
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unsupported log_level: {self.log_level}")

    @property
    def chain_ids(self) -> List[str]:
        return [c.chain_id for c in self.chains]

    # -------------------------
    # Serialization helpers
    # -------------------------

    def to_dict(self, *, redact: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if redact and data["provider"].get("secret_hex"):
            data["provider"]["secret_hex"] = _REDACTED
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def log_summary(self, logger: logging.Logger) -> None:
        p = self.provider
        logger.info(
            "entropy config: provider=%s chains=%s length=%d stride=%d storage=%s",
            p.address,
            ",".join(self.chain_ids),
            p.chain_length,
            p.effective_stride(),
            self.storage.verifier_uri,
        )

    # -------------------------
    # Loaders
    # -------------------------

    @staticmethod
    def from_env(prefix: str = "ENTROPY_") -> "EntropyConfig":
        """
        Load configuration from environment variables.

        Supported keys (examples):
          - ENTROPY_PROVIDER_ADDRESS=provider-1
          - ENTROPY_PROVIDER_SECRET=0x…            (32 bytes hex, required)
          - ENTROPY_CHAIN_LENGTH=100000
          - ENTROPY_CHAIN_SAMPLE_INTERVAL=316
          - ENTROPY_CHAIN_IDS=mainnet,testnet

          - ENTROPY_HOST=0.0.0.0
          - ENTROPY_PORT=8080
          - ENTROPY_BUILD_IN_BACKGROUND=true

          - ENTROPY_VERIFIER_URI=sqlite:///./data/entropy/verifier.db
          - ENTROPY_LOG_LEVEL=INFO
        """

        def _get(name: str, cast: Any, default: Any) -> Any:
            key = prefix + name
            raw = os.getenv(key)
            if raw is None:
                return default
            try:
                if cast is bool:
                    return raw.lower() in {"1", "true", "yes", "on"}
                return cast(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {prefix + name}") from e

        chain_ids = [c.strip() for c in _get("CHAIN_IDS", str, "").split(",") if c.strip()]
        cfg = EntropyConfig(
            provider=ProviderConfig(
                address=_get("PROVIDER_ADDRESS", str, "provider"),
                secret_hex=_get("PROVIDER_SECRET", str, ""),
                chain_length=_get("CHAIN_LENGTH", int, DEFAULT_CHAIN_LENGTH),
                chain_sample_interval=_get("CHAIN_SAMPLE_INTERVAL", int, None),
            ),
            chains=[ChainConfig(chain_id=c) for c in chain_ids],
            server=ServerConfig(
                host=_get("HOST", str, DEFAULT_HOST),
                port=_get("PORT", int, DEFAULT_PORT),
                build_in_background=_get("BUILD_IN_BACKGROUND", bool, True),
            ),
            storage=StorageConfig(verifier_uri=_get("VERIFIER_URI", str, "memory://")),
            log_level=_get("LOG_LEVEL", str, "INFO"),
        )
        cfg.validate()
        return cfg

    @staticmethod
    def from_file(path: str) -> "EntropyConfig":
        """
        Load configuration from a JSON or YAML file. Keys mirror the dataclass
        structure. Example (YAML):

            provider:
              address: provider-1
              secret_hex: "0x0101…01"
              chain_length: 100000
            chains:
              - chain_id: mainnet
              - chain_id: testnet
            server:
              port: 8080
            storage:
              verifier_uri: "sqlite:///./data/entropy/verifier.db"
            log_level: INFO

        ``chains`` may also be a list of plain ids or a mapping keyed by id.
        """
        data = _parse_json_or_yaml(_read_text(path), path)
        if not isinstance(data, dict):
            raise ValueError(f"{path!r}: top level must be a mapping")

        def _pop(d: Dict[str, Any], key: str, default: Any) -> Any:
            return d.pop(key, default) if isinstance(d, dict) else default

        provider_d = _pop(data, "provider", {}) or {}
        server_d = _pop(data, "server", {}) or {}
        storage_d = _pop(data, "storage", {}) or {}

        cfg = EntropyConfig(
            provider=ProviderConfig(
                address=str(_pop(provider_d, "address", "provider")),
                secret_hex=str(_pop(provider_d, "secret_hex", "")),
                chain_length=int(_pop(provider_d, "chain_length", DEFAULT_CHAIN_LENGTH)),
                chain_sample_interval=_pop(provider_d, "chain_sample_interval", None),
            ),
            chains=_parse_chains(_pop(data, "chains", []) or []),
            server=ServerConfig(
                host=_pop(server_d, "host", DEFAULT_HOST),
                port=int(_pop(server_d, "port", DEFAULT_PORT)),
                build_in_background=bool(_pop(server_d, "build_in_background", True)),
            ),
            storage=StorageConfig(verifier_uri=_pop(storage_d, "verifier_uri", "memory://")),
            log_level=str(_pop(data, "log_level", "INFO")),
        )
        cfg.validate()
        return cfg


# -------------------------
# Utilities
# -------------------------


def _parse_chains(raw: Any) -> List[ChainConfig]:
    if isinstance(raw, dict):
        return [ChainConfig(chain_id=str(k)) for k in raw]
    out: List[ChainConfig] = []
    for item in raw:
        if isinstance(item, dict):
            out.append(ChainConfig(chain_id=str(item.get("chain_id", ""))))
        else:
            out.append(ChainConfig(chain_id=str(item)))
    return out


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _parse_json_or_yaml(text: str, path_hint: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse {path_hint!r} as JSON or YAML: {e}") from e


def load_config(path: Optional[str] = None, *, env_prefix: str = "ENTROPY_") -> EntropyConfig:
    """Load from ``path`` when given, else from the environment."""
    if path:
        return EntropyConfig.from_file(path)
    return EntropyConfig.from_env(env_prefix)


__all__ = [
    "ProviderConfig",
    "ChainConfig",
    "ServerConfig",
    "StorageConfig",
    "EntropyConfig",
    "load_config",
]
