# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
import threading

import pytest

from entropy.chain.pebble import PebbleHashChain
from entropy.commit_reveal import (CommitRevealVerifier, UserCommit,
                                   chain_index_for_sequence,
                                   deterministic_user_secret, new_user_commit)
from entropy.errors import (DoubleFulfillment, ProviderChainBroken,
                            ProviderOrRequestNotFound, UserCommitmentMismatch)
from entropy.types.core import RequestStatus
from entropy.utils.hash import combine, keccak256, user_commitment

SEED = b"\x01" * 32


@pytest.fixture
def chain() -> PebbleHashChain:
    return PebbleHashChain(SEED, 16, 4)


@pytest.fixture
def verifier(metrics, chain) -> CommitRevealVerifier:
    v = CommitRevealVerifier(metrics=metrics)
    v.register("p1", chain.commitment)
    return v


def test_four_element_scenario_end_to_end(metrics):
    chain = PebbleHashChain(SEED, 4)
    d3 = keccak256(SEED)
    d2 = keccak256(d3)
    d1 = keccak256(d2)
    d0 = keccak256(d1)

    v = CommitRevealVerifier(metrics=metrics)
    v.register("provider", chain.commitment)
    assert v.provider_info("provider").commitment == d0

    s1 = deterministic_user_secret(0)
    assert s1 == keccak256((0).to_bytes(8, "big"))
    seq1 = v.request("provider", keccak256(s1))
    assert seq1 == 1
    assert chain.reveal(chain_index_for_sequence(seq1)) == d1
    out1 = v.fulfill("provider", seq1, d1, s1)
    assert out1 == keccak256(s1 + d1)
    assert v.provider_info("provider").last_revealed_hash == d1

    s2 = deterministic_user_secret(1)
    seq2 = v.request("provider", keccak256(s2))
    assert seq2 == 2
    out2 = v.fulfill("provider", seq2, d2, s2)
    assert out2 == keccak256(s2 + d2)
    assert v.provider_info("provider").last_revealed_hash == d2

    with pytest.raises(DoubleFulfillment):
        v.fulfill("provider", seq1, d1, s1)
    assert v.provider_info("provider").last_revealed_hash == d2


def test_sequence_numbers_are_gapless_and_increasing(verifier):
    seqs = [verifier.request("p1", user_commitment(deterministic_user_secret(i))) for i in range(10)]
    assert seqs == list(range(1, 11))
    assert verifier.provider_info("p1").sequence_number == 10
    assert [r.sequence_number for r in verifier.open_requests("p1")] == seqs


def test_user_commitment_mismatch_leaves_state_untouched(verifier, chain, metrics):
    secret = deterministic_user_secret(0)
    seq = verifier.request("p1", user_commitment(secret))
    before = verifier.provider_info("p1")
    with pytest.raises(UserCommitmentMismatch):
        verifier.fulfill("p1", seq, chain.reveal(seq), deterministic_user_secret(99))
    assert verifier.provider_info("p1") == before
    assert verifier.get_request("p1", seq).status is RequestStatus.OPEN
    assert (
        metrics.registry.get_sample_value(
            "animica_entropy_fulfillments_total", {"outcome": "user_commitment_mismatch"}
        )
        == 1.0
    )


def test_broken_chain_leaves_state_untouched(verifier, chain):
    secret = deterministic_user_secret(0)
    seq = verifier.request("p1", user_commitment(secret))
    before = verifier.provider_info("p1")
    # d_2 does not hash to d_0.
    with pytest.raises(ProviderChainBroken) as ei:
        verifier.fulfill("p1", seq, chain.reveal(2), secret)
    assert ei.value.expected_hex == chain.commitment.hex()
    assert verifier.provider_info("p1") == before
    assert verifier.get_request("p1", seq).is_open
    # The honest revelation still works afterwards.
    assert verifier.fulfill("p1", seq, chain.reveal(1), secret) == combine(secret, chain.reveal(1))


def test_user_secret_is_checked_before_provider_revelation(verifier, chain):
    seq = verifier.request("p1", user_commitment(deterministic_user_secret(0)))
    with pytest.raises(UserCommitmentMismatch):
        verifier.fulfill("p1", seq, chain.reveal(5), deterministic_user_secret(1))


def test_unknown_provider_or_request(verifier, chain):
    with pytest.raises(ProviderOrRequestNotFound):
        verifier.request("ghost", b"\x00" * 32)
    with pytest.raises(ProviderOrRequestNotFound) as ei:
        verifier.fulfill("p1", 7, chain.reveal(1), b"\x00" * 32)
    assert ei.value.sequence_number == 7
    with pytest.raises(ProviderOrRequestNotFound):
        verifier.provider_info("ghost")
    with pytest.raises(ProviderOrRequestNotFound):
        verifier.get_request("p1", 1)


def test_fulfill_result_and_request_record(verifier, chain):
    commit = UserCommit.from_secret(deterministic_user_secret(3))
    seq = verifier.request("p1", commit.commitment, requester="alice")
    res = verifier.fulfill_result("p1", seq, chain.reveal(seq), commit.secret)
    assert res.sequence_number == seq
    assert res.provider_revelation == chain.reveal(seq)
    req = verifier.get_request("p1", seq)
    assert req.status is RequestStatus.FULFILLED
    assert req.output == res.output
    assert req.requester == "alice"
    info = verifier.provider_info("p1")
    assert info.last_revealed_sequence == seq
    assert verifier.open_requests("p1") == []


def test_hex_inputs_are_accepted(verifier, chain):
    secret = deterministic_user_secret(0)
    seq = verifier.request("p1", "0x" + user_commitment(secret).hex())
    out = verifier.fulfill("p1", seq, chain.reveal(1).hex(), secret.hex())
    assert out == combine(secret, chain.reveal(1))
    with pytest.raises(ValueError):
        verifier.request("p1", "zz")
    with pytest.raises(ValueError):
        verifier.request("p1", b"\x00" * 31)


def test_providers_are_isolated(metrics):
    a = PebbleHashChain(b"\x0a" * 32, 8)
    b = PebbleHashChain(b"\x0b" * 32, 8)
    v = CommitRevealVerifier(metrics=metrics)
    v.register("a", a.commitment)
    v.register("b", b.commitment)
    sa = deterministic_user_secret(0)
    sb = deterministic_user_secret(1)
    assert v.request("a", user_commitment(sa)) == 1
    assert v.request("b", user_commitment(sb)) == 1
    # Provider b's revelation cannot satisfy provider a's chain.
    with pytest.raises(ProviderChainBroken):
        v.fulfill("a", 1, b.reveal(1), sa)
    v.fulfill("b", 1, b.reveal(1), sb)
    assert v.provider_info("a").last_revealed_hash == a.commitment
    assert v.providers() == ["a", "b"]


def test_reregistration_resets_provider(verifier, chain):
    verifier.request("p1", user_commitment(deterministic_user_secret(0)))
    other = PebbleHashChain(b"\x02" * 32, 8)
    info = verifier.register("p1", other.commitment)
    assert info.sequence_number == 0
    assert info.last_revealed_hash == other.commitment
    assert verifier.open_requests("p1") == []
    assert verifier.request("p1", user_commitment(deterministic_user_secret(0))) == 1


def test_concurrent_requests_get_unique_sequence_numbers(verifier):
    results = []
    lock = threading.Lock()

    def worker(offset: int) -> None:
        for i in range(25):
            seq = verifier.request("p1", user_commitment(deterministic_user_secret(offset + i)))
            with lock:
                results.append(seq)

    threads = [threading.Thread(target=worker, args=(k * 100,)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sorted(results) == list(range(1, 101))


def test_concurrent_double_fulfillment_succeeds_once(verifier, chain):
    secret = deterministic_user_secret(0)
    seq = verifier.request("p1", user_commitment(secret))
    outcomes = []
    lock = threading.Lock()

    def worker() -> None:
        try:
            verifier.fulfill("p1", seq, chain.reveal(seq), secret)
            outcome = "ok"
        except DoubleFulfillment:
            outcome = "double"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert outcomes.count("ok") == 1
    assert outcomes.count("double") == 7


def test_new_user_commit_is_random_and_consistent():
    a, b = new_user_commit(), new_user_commit()
    assert a.secret != b.secret
    assert a.commitment == keccak256(a.secret)
    assert a.secret.hex() not in repr(a)
    assert a.to_public_dict() == {"user_commitment": a.commitment.hex()}


def test_chain_index_for_sequence():
    assert chain_index_for_sequence(1) == 1
    assert chain_index_for_sequence(42) == 42
    with pytest.raises(ValueError):
        chain_index_for_sequence(0)
    with pytest.raises(TypeError):
        chain_index_for_sequence(True)
