"""
Verifier state persistence over a byte KeyValue backend.

Buckets
-------
- PROVIDERS: per-provider `ProviderInfo`
    key = \\x01 | u32(len(provider)) | provider
- REQUESTS:  per-(provider, sequence) `Request`
    key = \\x02 | u32(len(provider)) | provider | u64_be(sequence)

Values are compact, deterministic JSON (sorted keys, stable separators) with
digests as lowercase hex. Only public values are stored: commitments,
revealed hashes, user commitments and outputs. Provider seeds and user
secrets never reach the store.

This is the minimum needed to resume verification after a restart: the
sequence counter, the last revealed hash and every request.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional

from ..errors import InternalUnknown
from ..types.core import ProviderInfo, Request, RequestStatus
from ..utils.bytes import u32_prefixed
from . import KeyValue

logger = logging.getLogger(__name__)

PROVIDERS_PREFIX = b"\x01"
REQUESTS_PREFIX = b"\x02"


def _provider_key(provider_id: str) -> bytes:
    return PROVIDERS_PREFIX + u32_prefixed(provider_id.encode("utf-8"))


def _requests_prefix(provider_id: str) -> bytes:
    return REQUESTS_PREFIX + u32_prefixed(provider_id.encode("utf-8"))


def _request_key(provider_id: str, sequence_number: int) -> bytes:
    return _requests_prefix(provider_id) + sequence_number.to_bytes(8, "big", signed=False)


def _dumps_stable(obj: Mapping[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _loads(data: bytes, what: str) -> Dict[str, Any]:
    try:
        obj = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InternalUnknown(reason=f"malformed stored {what}: {e}") from e
    if not isinstance(obj, dict):
        raise InternalUnknown(reason=f"malformed stored {what}: not an object")
    return obj


# --- record codecs ------------------------------------------------------------


def encode_provider(info: ProviderInfo) -> bytes:
    return _dumps_stable(
        {
            "provider_id": info.provider_id,
            "sequence_number": info.sequence_number,
            "commitment": info.commitment.hex(),
            "last_revealed_hash": info.last_revealed_hash.hex(),
            "last_revealed_sequence": info.last_revealed_sequence,
        }
    )


def decode_provider(data: bytes) -> ProviderInfo:
    obj = _loads(data, "provider")
    try:
        return ProviderInfo(
            provider_id=str(obj["provider_id"]),
            sequence_number=int(obj["sequence_number"]),
            commitment=bytes.fromhex(obj["commitment"]),
            last_revealed_hash=bytes.fromhex(obj["last_revealed_hash"]),
            last_revealed_sequence=int(obj.get("last_revealed_sequence", 0)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise InternalUnknown(reason=f"malformed stored provider: {e}") from e


def encode_request(req: Request) -> bytes:
    return _dumps_stable(
        {
            "provider_id": req.provider_id,
            "sequence_number": req.sequence_number,
            "user_commitment": req.user_commitment.hex(),
            "requester": req.requester,
            "status": req.status.value,
            "output": None if req.output is None else req.output.hex(),
        }
    )


def decode_request(data: bytes) -> Request:
    obj = _loads(data, "request")
    try:
        output = obj.get("output")
        return Request(
            provider_id=str(obj["provider_id"]),
            sequence_number=int(obj["sequence_number"]),
            user_commitment=bytes.fromhex(obj["user_commitment"]),
            requester=obj.get("requester"),
            status=RequestStatus(obj["status"]),
            output=None if output is None else bytes.fromhex(output),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise InternalUnknown(reason=f"malformed stored request: {e}") from e


# --- store --------------------------------------------------------------------


@dataclass(frozen=True)
class VerifierStore:
    """Typed view over a KeyValue backend for verifier records."""

    kv: KeyValue

    @contextmanager
    def _txn(self) -> Iterator[None]:
        txn = getattr(self.kv, "transaction", None)
        with (txn() if callable(txn) else nullcontext()):
            yield

    # --- providers -----------------------------------------------------------

    def put_provider(self, info: ProviderInfo) -> None:
        self.kv.put(_provider_key(info.provider_id), encode_provider(info))

    def get_provider(self, provider_id: str) -> Optional[ProviderInfo]:
        raw = self.kv.get(_provider_key(provider_id))
        return None if raw is None else decode_provider(raw)

    def iter_providers(self) -> Iterator[ProviderInfo]:
        for _key, raw in self.kv.iter_prefix(PROVIDERS_PREFIX):
            yield decode_provider(raw)

    # --- requests ------------------------------------------------------------

    def put_request(self, req: Request) -> None:
        self.kv.put(_request_key(req.provider_id, req.sequence_number), encode_request(req))

    def get_request(self, provider_id: str, sequence_number: int) -> Optional[Request]:
        raw = self.kv.get(_request_key(provider_id, sequence_number))
        return None if raw is None else decode_request(raw)

    def iter_requests(self, provider_id: str) -> Iterator[Request]:
        for _key, raw in self.kv.iter_prefix(_requests_prefix(provider_id)):
            yield decode_request(raw)

    def delete_requests(self, provider_id: str) -> int:
        keys: List[bytes] = [k for k, _ in self.kv.iter_prefix(_requests_prefix(provider_id))]
        for k in keys:
            self.kv.delete(k)
        return len(keys)

    # --- grouped writes ------------------------------------------------------

    def save(self, info: ProviderInfo, req: Optional[Request] = None) -> None:
        """Persist provider info and (optionally) the request it touched, together."""
        with self._txn():
            self.put_provider(info)
            if req is not None:
                self.put_request(req)

    def reset_provider(self, info: ProviderInfo) -> None:
        """Replace a provider's record and drop all its requests (re-registration)."""
        with self._txn():
            dropped = self.delete_requests(info.provider_id)
            self.put_provider(info)
        if dropped:
            logger.info("dropped %d stored requests for re-registered provider %s", dropped, info.provider_id)


__all__ = [
    "VerifierStore",
    "PROVIDERS_PREFIX",
    "REQUESTS_PREFIX",
    "encode_provider",
    "decode_provider",
    "encode_request",
    "decode_request",
]
