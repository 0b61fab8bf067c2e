"""
Reproducible audit runs of the full commit–reveal flow.

Two drivers share one record format:

- :func:`run_audit` is fully offline. It builds a provider chain, registers
  it with a local verifier and pushes ``samples`` requests through
  request → reveal → fulfill.
- :func:`run_live_audit` treats a running provider as a black box. It
  fetches the commitment and each revelation over HTTP and checks every one
  with a local verifier, so a provider that serves anything but its
  committed chain fails the audit.

Each fulfilled sample becomes an :class:`AuditRecord`; :func:`write_audit_files`
emits ``random_numbers.txt`` (one output per line) and ``audit_trail.txt``
(one :func:`format_audit_line` per line).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import requests

from .chain.pebble import PebbleHashChain
from .commit_reveal.commit import deterministic_user_secret
from .commit_reveal.verifier import CommitRevealVerifier, chain_index_for_sequence
from .encoding import BinaryEncoding, Blob
from .metrics import Metrics
from .utils.bytes import from_hex
from .utils.hash import keccak256, user_commitment

logger = logging.getLogger(__name__)

DEFAULT_SIM_SECRET = b"\x01" * 32
DEFAULT_SIM_PROVIDER = "auditable_provider_1"
DEFAULT_SIM_STRIDE = 10
LIVE_PROVIDER_ID = "0xprovider"

RANDOM_NUMBERS_FILE = "random_numbers.txt"
AUDIT_TRAIL_FILE = "audit_trail.txt"


class LiveAuditError(RuntimeError):
    """The remote provider could not be queried or returned malformed data."""


@dataclass(frozen=True)
class AuditRecord:
    sample: int
    sequence_number: int
    user_secret: bytes
    provider_revelation: bytes
    output: bytes


def format_audit_line(r: AuditRecord) -> str:
    return (
        f"sample_number={r.sample}, sequence_number={r.sequence_number}, "
        f"user_secret={r.user_secret.hex()}, "
        f"provider_revelation={r.provider_revelation.hex()}, "
        f"final_random_number={r.output.hex()}"
    )


def write_audit_files(records: Sequence[AuditRecord], out_dir: str = ".") -> Tuple[str, str]:
    """Write both audit files into ``out_dir``; returns their paths."""
    os.makedirs(out_dir, exist_ok=True)
    numbers_path = os.path.join(out_dir, RANDOM_NUMBERS_FILE)
    trail_path = os.path.join(out_dir, AUDIT_TRAIL_FILE)
    with open(numbers_path, "w", encoding="utf-8") as f:
        f.write("\n".join(r.output.hex() for r in records))
    with open(trail_path, "w", encoding="utf-8") as f:
        f.write("\n".join(format_audit_line(r) for r in records))
    logger.info("wrote %d audit records to %s", len(records), out_dir)
    return numbers_path, trail_path


def run_audit(
    samples: int,
    *,
    secret: bytes = DEFAULT_SIM_SECRET,
    provider_id: str = DEFAULT_SIM_PROVIDER,
    stride: int = DEFAULT_SIM_STRIDE,
    metrics: Optional[Metrics] = None,
) -> List[AuditRecord]:
    """
    Offline end-to-end run. The chain has ``samples + 1`` elements (index 0
    is the commitment) and is seeded directly with ``secret``. Requester
    secrets are ``H(u64_be(i))`` for ``i = 0 … samples-1``.
    """
    if samples < 1:
        raise ValueError("samples must be >= 1")
    chain = PebbleHashChain(secret, samples + 1, stride)
    verifier = CommitRevealVerifier(metrics=metrics)
    verifier.register(provider_id, chain.commitment)
    logger.info("simulating %d samples for provider %s (stride=%d)", samples, provider_id, chain.stride)

    records: List[AuditRecord] = []
    for i in range(samples):
        user_secret = deterministic_user_secret(i)
        seq = verifier.request(provider_id, user_commitment(user_secret), f"auditable_user_{i}")
        revelation = chain.reveal(chain_index_for_sequence(seq))
        output = verifier.fulfill(provider_id, seq, revelation, user_secret)
        records.append(AuditRecord(i + 1, seq, user_secret, revelation, output))
    return records


# ---------------------------------------------------------------------------
# Live (HTTP) audit
# ---------------------------------------------------------------------------


def live_user_secret(chain_id: str, sample: int) -> bytes:
    """``H("user_" + chain_id + str(sample))``."""
    return keccak256(f"user_{chain_id}{sample}".encode("utf-8"))


def _get_json(session: requests.Session, url: str, timeout: float) -> dict:
    try:
        r = session.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise LiveAuditError(f"GET {url} failed: {e}") from e
    if r.status_code != 200:
        raise LiveAuditError(f"server returned HTTP {r.status_code} for {url}: {r.text}")
    try:
        data = r.json()
    except ValueError as e:
        raise LiveAuditError(f"non-JSON response from {url}") from e
    if not isinstance(data, dict):
        raise LiveAuditError(f"unexpected response shape from {url}")
    return data


def run_live_audit(
    server_url: str,
    chain_id: str,
    samples: int,
    *,
    chain_length: Optional[int] = None,
    session: Optional[requests.Session] = None,
    timeout: float = 10.0,
    metrics: Optional[Metrics] = None,
) -> List[AuditRecord]:
    """
    Black-box audit of a running provider.

    ``chain_length`` (when known, e.g. from the provider's config) bounds
    ``samples``: sequence ``n`` needs chain index ``n``, so at most
    ``chain_length - 1`` samples fit.

    Raises:
        ValueError: too many samples for the chain.
        LiveAuditError: transport or response-format problems.
        EntropyError: a revelation failed verification.
    """
    if samples < 1:
        raise ValueError("samples must be >= 1")
    if chain_length is not None and samples > chain_length - 1:
        raise ValueError(
            f"samples ({samples}) cannot exceed the maximum possible samples "
            f"({chain_length - 1}); increase provider.chain_length"
        )
    base = server_url.rstrip("/")
    s = session or requests.Session()

    data = _get_json(s, f"{base}/v1/commitment/{chain_id}", timeout)
    try:
        commitment = from_hex(str(data["commitment"]))
    except (KeyError, ValueError) as e:
        raise LiveAuditError("malformed commitment response") from e
    logger.info("server reported commitment %s for %s", commitment.hex(), chain_id)

    verifier = CommitRevealVerifier(metrics=metrics)
    verifier.register(LIVE_PROVIDER_ID, commitment)

    records: List[AuditRecord] = []
    for i in range(1, samples + 1):
        user_secret = live_user_secret(chain_id, i)
        seq = verifier.request(LIVE_PROVIDER_ID, user_commitment(user_secret))
        url = (
            f"{base}/v1/chains/{chain_id}/revelations/{chain_index_for_sequence(seq)}"
            f"?encoding={BinaryEncoding.HEX.value}"
        )
        body = _get_json(s, url, timeout)
        try:
            revelation = Blob.model_validate(body["value"]).to_bytes()
        except (KeyError, ValueError) as e:
            raise LiveAuditError(f"malformed revelation response for sequence {seq}") from e
        output = verifier.fulfill(LIVE_PROVIDER_ID, seq, revelation, user_secret)
        records.append(AuditRecord(i, seq, user_secret, revelation, output))
        logger.debug("sample %d verified (sequence %d)", i, seq)
    return records


__all__ = [
    "AuditRecord",
    "LiveAuditError",
    "format_audit_line",
    "write_audit_files",
    "run_audit",
    "run_live_audit",
    "live_user_secret",
]
