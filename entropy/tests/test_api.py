import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from entropy.api import mount_entropy_api  # noqa: E402
from entropy.chain.pebble import PebbleHashChain  # noqa: E402
from entropy.chain.registry import ChainRegistry  # noqa: E402
from entropy.commit_reveal import CommitRevealVerifier, deterministic_user_secret  # noqa: E402
from entropy.config import ChainConfig, EntropyConfig, ProviderConfig, ServerConfig  # noqa: E402
from entropy.server import build_chain, create_app  # noqa: E402
from entropy.service import RevelationService  # noqa: E402
from entropy.utils.hash import combine, user_commitment  # noqa: E402

SEED = b"\x01" * 32


@pytest.fixture
def chain() -> PebbleHashChain:
    return PebbleHashChain(SEED, 12, 3)


@pytest.fixture
def client(metrics, chain) -> TestClient:
    reg = ChainRegistry(["mainnet", "pending"], metrics=metrics)
    reg.initialize("mainnet", chain)
    verifier = CommitRevealVerifier(metrics=metrics)
    app = FastAPI()
    mount_entropy_api(app, RevelationService(reg, verifier, metrics=metrics), verifier=verifier)
    return TestClient(app)


def test_list_chains(client):
    r = client.get("/v1/chains")
    assert r.status_code == 200
    assert r.json() == {"chains": {"mainnet": "initialized", "pending": "uninitialized"}}


def test_commitment(client, chain):
    r = client.get("/v1/commitment/mainnet")
    assert r.status_code == 200
    assert r.json() == {"commitment": chain.commitment.hex()}


def test_commitment_errors(client):
    r = client.get("/v1/commitment/nope")
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_chain_id"
    r = client.get("/v1/commitment/pending")
    assert r.status_code == 503
    assert r.json()["error"] == "uninitialized"


@pytest.mark.parametrize("route", ["revelations", "mock_revelation"])
def test_revelation_routes(client, chain, route):
    r = client.get(f"/v1/chains/mainnet/{route}/5")
    assert r.status_code == 200
    assert r.json() == {"value": {"encoding": "hex", "data": chain.reveal(5).hex()}}


def test_revelation_encodings(client, chain):
    r = client.get("/v1/chains/mainnet/revelations/2", params={"encoding": "array"})
    assert r.status_code == 200
    assert bytes(r.json()["value"]["data"]) == chain.reveal(2)
    r = client.get("/v1/chains/mainnet/revelations/2", params={"encoding": "rot13"})
    assert r.status_code == 422


def test_revelation_errors(client):
    r = client.get("/v1/chains/mainnet/revelations/12")
    assert r.status_code == 400
    assert r.json()["error"] == "chain_exhausted"
    assert client.get("/v1/chains/pending/revelations/1").status_code == 503
    assert client.get("/v1/chains/nope/revelations/1").status_code == 400
    assert client.get("/v1/chains/mainnet/revelations/-1").status_code == 422


def test_contract_flow_over_http(client, chain):
    r = client.post("/v1/contract/providers/p1", json={"commitment": chain.commitment.hex()})
    assert r.status_code == 200
    assert r.json()["sequence_number"] == 0

    secret = deterministic_user_secret(0)
    r = client.post(
        "/v1/contract/providers/p1/requests",
        json={"user_commitment": user_commitment(secret).hex(), "requester": "alice"},
    )
    assert r.status_code == 200
    seq = r.json()["sequence_number"]
    assert seq == 1

    revelation = client.get(f"/v1/chains/mainnet/revelations/{seq}").json()["value"]["data"]
    body = {"provider_revelation": revelation, "user_secret": secret.hex()}
    r = client.post(f"/v1/contract/providers/p1/requests/{seq}/fulfill", json=body)
    assert r.status_code == 200
    assert r.json() == {"output": combine(secret, chain.reveal(1)).hex()}

    r = client.post(f"/v1/contract/providers/p1/requests/{seq}/fulfill", json=body)
    assert r.status_code == 409
    assert r.json()["error"] == "double_fulfillment"

    r = client.get(f"/v1/contract/providers/p1/requests/{seq}")
    assert r.json()["status"] == "fulfilled"
    r = client.get("/v1/contract/providers/p1")
    assert r.json()["last_revealed_hash"] == chain.reveal(1).hex()


def test_contract_errors_over_http(client, chain):
    assert client.post("/v1/contract/providers/ghost/requests", json={"user_commitment": "00" * 32}).status_code == 404
    r = client.post("/v1/contract/providers/p1", json={"commitment": "abc"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_argument"

    client.post("/v1/contract/providers/p1", json={"commitment": chain.commitment.hex()})
    secret = deterministic_user_secret(0)
    client.post("/v1/contract/providers/p1/requests", json={"user_commitment": user_commitment(secret).hex()})
    r = client.post(
        "/v1/contract/providers/p1/requests/1/fulfill",
        json={"provider_revelation": chain.reveal(3).hex(), "user_secret": secret.hex()},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "provider_chain_broken"
    r = client.post(
        "/v1/contract/providers/p1/requests/1/fulfill",
        json={"provider_revelation": chain.reveal(1).hex(), "user_secret": "00" * 32},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "user_commitment_mismatch"


def _config(**server) -> EntropyConfig:
    return EntropyConfig(
        provider=ProviderConfig(address="provider-1", secret_hex="42" * 32, chain_length=16),
        chains=[ChainConfig("mainnet"), ChainConfig("testnet")],
        server=ServerConfig(**server),
    )


def test_create_app_builds_chains_and_serves_metrics(metrics):
    cfg = _config(build_in_background=False)
    client = TestClient(create_app(cfg, metrics=metrics))

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["chains"] == {"mainnet": "initialized", "testnet": "initialized"}

    expected = build_chain(cfg, "testnet")
    assert client.get("/v1/commitment/testnet").json() == {"commitment": expected.commitment.hex()}
    client.get("/v1/chains/testnet/revelations/3")

    r = client.get("/metrics")
    assert r.status_code == 200
    assert "animica_entropy_reveals_total" in r.text


def test_create_app_background_build(metrics):
    app = create_app(_config(build_in_background=True), metrics=metrics)
    for t in app.state.entropy_build_threads:
        t.join(10.0)
    client = TestClient(app)
    assert client.get("/healthz").json()["chains"]["mainnet"] == "initialized"
