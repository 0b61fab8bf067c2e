import base64

import pytest

from entropy.chain.pebble import PebbleHashChain
from entropy.chain.registry import ChainRegistry
from entropy.commit_reveal import CommitRevealVerifier, deterministic_user_secret
from entropy.encoding import BinaryEncoding, Blob
from entropy.errors import (ChainExhausted, InternalUnknown, InvalidChainId,
                            Uninitialized)
from entropy.service import RevelationService
from entropy.utils.hash import combine, user_commitment

SEED = b"\x01" * 32


@pytest.fixture
def chain() -> PebbleHashChain:
    return PebbleHashChain(SEED, 10, 3)


@pytest.fixture
def service(metrics, chain) -> RevelationService:
    reg = ChainRegistry(["mainnet", "pending"], metrics=metrics)
    reg.initialize("mainnet", chain)
    v = CommitRevealVerifier(metrics=metrics)
    v.register("p1", chain.commitment)
    return RevelationService(reg, v, metrics=metrics)


def test_commitment_and_reveal(service, chain):
    assert service.commitment("mainnet") == chain.commitment
    assert service.commitment_hex("mainnet") == chain.commitment.hex()
    assert service.reveal("mainnet", 4) == chain.reveal(4)
    assert service.revelation_for_sequence("mainnet", 3) == chain.reveal(3)
    assert service.chains() == {"mainnet": "initialized", "pending": "uninitialized"}


def test_lookup_errors_pass_through(service, metrics):
    with pytest.raises(InvalidChainId):
        service.reveal("nope", 1)
    with pytest.raises(Uninitialized):
        service.commitment("pending")
    with pytest.raises(ChainExhausted):
        service.reveal("mainnet", 10)
    assert (
        metrics.registry.get_sample_value("animica_entropy_reveals_total", {"outcome": "chain_exhausted"})
        == 1.0
    )
    assert (
        metrics.registry.get_sample_value("animica_entropy_reveals_total", {"outcome": "invalid_chain_id"})
        == 1.0
    )


def test_unexpected_failure_becomes_internal_unknown(metrics):
    class BrokenRegistry(ChainRegistry):
        def require(self, chain_id):
            raise KeyError("boom")

    svc = RevelationService(BrokenRegistry(["x"], metrics=metrics), metrics=metrics)
    with pytest.raises(InternalUnknown) as ei:
        svc.reveal("x", 0)
    assert ei.value.http_status == 500
    assert isinstance(ei.value.__cause__, KeyError)


def test_reveal_rejects_bad_indices(service):
    with pytest.raises(ValueError):
        service.reveal("mainnet", -1)
    with pytest.raises(TypeError):
        service.reveal("mainnet", "1")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "encoding,decode",
    [
        (BinaryEncoding.HEX, bytes.fromhex),
        (BinaryEncoding.BASE64, base64.b64decode),
        (BinaryEncoding.ARRAY, bytes),
    ],
)
def test_reveal_encoded(service, chain, encoding, decode):
    blob = service.reveal_encoded("mainnet", 2, encoding)
    assert blob.encoding is encoding
    assert decode(blob.data) == chain.reveal(2)
    assert blob.to_bytes() == chain.reveal(2)


def test_blob_wire_shape_and_validation():
    value = bytes(range(4))
    assert Blob.encode(value).model_dump(mode="json") == {"encoding": "hex", "data": "00010203"}
    assert Blob.encode(value, BinaryEncoding.ARRAY).model_dump(mode="json") == {
        "encoding": "array",
        "data": [0, 1, 2, 3],
    }
    assert Blob.model_validate({"encoding": "base64", "data": "AAECAw=="}).to_bytes() == value
    with pytest.raises(ValueError):
        Blob(encoding=BinaryEncoding.ARRAY, data="00").to_bytes()
    with pytest.raises(ValueError):
        Blob(encoding=BinaryEncoding.ARRAY, data=[256]).to_bytes()
    with pytest.raises(ValueError):
        Blob(encoding=BinaryEncoding.BASE64, data="!!!").to_bytes()


def test_fulfill_through_service(service, chain):
    secret = deterministic_user_secret(0)
    seq = service.verifier.request("p1", user_commitment(secret))
    res = service.fulfill("mainnet", "p1", seq, secret)
    assert res.output == combine(secret, chain.reveal(1))
    assert service.verifier.provider_info("p1").last_revealed_hash == chain.reveal(1)


def test_fulfill_without_verifier(metrics, chain):
    reg = ChainRegistry(["mainnet"], metrics=metrics)
    reg.initialize("mainnet", chain)
    with pytest.raises(InternalUnknown):
        RevelationService(reg, metrics=metrics).fulfill("mainnet", "p1", 1, b"\x00" * 32)
