import json

import pytest

from entropy.config import (ChainConfig, EntropyConfig, ProviderConfig,
                            StorageConfig, load_config)

SECRET_HEX = "0x" + "42" * 32


def _valid() -> EntropyConfig:
    return EntropyConfig(
        provider=ProviderConfig(address="p", secret_hex=SECRET_HEX, chain_length=100),
        chains=[ChainConfig("mainnet")],
    )


def test_valid_config_and_derived_values():
    cfg = _valid()
    cfg.validate()
    assert cfg.provider.secret == b"\x42" * 32
    assert cfg.provider.effective_stride() == 10
    cfg.provider.chain_sample_interval = 7
    assert cfg.provider.effective_stride() == 7
    assert cfg.chain_ids == ["mainnet"]


@pytest.mark.parametrize(
    "mutate",
    [
        lambda c: setattr(c.provider, "secret_hex", ""),
        lambda c: setattr(c.provider, "secret_hex", "42" * 31),
        lambda c: setattr(c.provider, "secret_hex", "zz" * 32),
        lambda c: setattr(c.provider, "chain_length", 0),
        lambda c: setattr(c.provider, "chain_sample_interval", 0),
        lambda c: setattr(c, "chains", []),
        lambda c: setattr(c, "chains", [ChainConfig("a"), ChainConfig("a")]),
        lambda c: setattr(c.server, "port", 0),
        lambda c: setattr(c, "storage", StorageConfig("redis://x")),
        lambda c: setattr(c, "log_level", "LOUD"),
    ],
)
def test_invalid_configs_are_rejected(mutate):
    cfg = _valid()
    mutate(cfg)
    with pytest.raises(ValueError):
        cfg.validate()


def test_to_dict_redacts_secret():
    cfg = _valid()
    assert cfg.to_dict()["provider"]["secret_hex"] == "<redacted>"
    assert "42" * 32 not in cfg.to_json()
    assert cfg.to_dict(redact=False)["provider"]["secret_hex"] == SECRET_HEX


def test_from_env(monkeypatch):
    monkeypatch.setenv("ENTROPY_PROVIDER_ADDRESS", "provider-9")
    monkeypatch.setenv("ENTROPY_PROVIDER_SECRET", SECRET_HEX)
    monkeypatch.setenv("ENTROPY_CHAIN_LENGTH", "64")
    monkeypatch.setenv("ENTROPY_CHAIN_IDS", "mainnet, testnet,")
    monkeypatch.setenv("ENTROPY_PORT", "9000")
    monkeypatch.setenv("ENTROPY_BUILD_IN_BACKGROUND", "false")
    cfg = EntropyConfig.from_env()
    assert cfg.provider.address == "provider-9"
    assert cfg.provider.chain_length == 64
    assert cfg.chain_ids == ["mainnet", "testnet"]
    assert cfg.server.port == 9000
    assert cfg.server.build_in_background is False
    assert cfg.storage.verifier_uri == "memory://"


def test_from_env_rejects_bad_numbers(monkeypatch):
    monkeypatch.setenv("ENTROPY_PROVIDER_SECRET", SECRET_HEX)
    monkeypatch.setenv("ENTROPY_CHAIN_IDS", "mainnet")
    monkeypatch.setenv("ENTROPY_CHAIN_LENGTH", "lots")
    with pytest.raises(ValueError, match="ENTROPY_CHAIN_LENGTH"):
        EntropyConfig.from_env()


def test_from_yaml_file(tmp_path):
    path = tmp_path / "provider.yaml"
    path.write_text(
        "provider:\n"
        "  address: provider-1\n"
        f"  secret_hex: \"{SECRET_HEX}\"\n"
        "  chain_length: 32\n"
        "  chain_sample_interval: 4\n"
        "chains:\n"
        "  - chain_id: mainnet\n"
        "  - testnet\n"
        "storage:\n"
        "  verifier_uri: sqlite:///./verifier.db\n"
        "log_level: DEBUG\n",
        encoding="utf-8",
    )
    cfg = load_config(str(path))
    assert cfg.chain_ids == ["mainnet", "testnet"]
    assert cfg.provider.effective_stride() == 4
    assert cfg.storage.verifier_uri == "sqlite:///./verifier.db"
    assert cfg.log_level == "DEBUG"


def test_from_json_file_with_chain_mapping(tmp_path):
    path = tmp_path / "provider.json"
    path.write_text(
        json.dumps(
            {
                "provider": {"address": "p", "secret_hex": SECRET_HEX},
                "chains": {"ethereum": {}, "base": {}},
                "server": {"port": 8081},
            }
        ),
        encoding="utf-8",
    )
    cfg = EntropyConfig.from_file(str(path))
    assert cfg.chain_ids == ["ethereum", "base"]
    assert cfg.server.port == 8081
    assert cfg.provider.chain_length == 100_000


def test_unparseable_file(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("provider: [unclosed\n", encoding="utf-8")
    with pytest.raises(ValueError):
        EntropyConfig.from_file(str(path))
