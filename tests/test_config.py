"""
Tests for network parsing and settings resolution (env, .env and nawi.toml).
"""

from __future__ import annotations

import pytest

from nawi.config import Network, get_settings, parse_network
from nawi.core.exceptions import ConfigError


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("mainnet", Network("mainnet")),
        ("Preprod", Network("preprod")),
        (" preview ", Network("preview")),
        ("testnet:42", Network("testnet", 42)),
    ],
)
def test_parse_network(raw, expected):
    assert parse_network(raw) == expected


def test_parse_network_rejects_unknown_and_bad_magic():
    with pytest.raises(ValueError, match="Unknown network"):
        parse_network("sanchonet")
    with pytest.raises(ValueError, match="testnet:<magic>"):
        parse_network("testnet:abc")


def test_testnet_str_includes_magic():
    assert str(Network("testnet", 2)) == "testnet:2"
    assert str(Network("mainnet")) == "mainnet"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("BLOCKFROST_KEY", "mainnetKey123")
    settings = get_settings(Network("mainnet"))
    assert settings.blockfrost_key == "mainnetKey123"
    assert settings.blockfrost_url == "https://cardano-mainnet.blockfrost.io/api/v0"
    assert settings.request_timeout_sec == 30.0
    assert settings.system_start_ms is None


def test_settings_project_id_fallback(monkeypatch):
    monkeypatch.setenv("BLOCKFROST_PROJECT_ID", "preprodKey")
    settings = get_settings(Network("preprod"))
    assert settings.blockfrost_key == "preprodKey"
    assert settings.blockfrost_url.startswith("https://cardano-preprod.")


def test_settings_from_toml(isolated_env):
    (isolated_env / "nawi.toml").write_text(
        'key = "fileKey"\nrequest_timeout_sec = 5\nsystem_start_ms = 1000\n'
    )
    settings = get_settings(Network("preview"))
    assert settings.blockfrost_key == "fileKey"
    assert settings.request_timeout_sec == 5.0
    assert settings.system_start_ms == 1000


def test_env_overrides_toml(isolated_env, monkeypatch):
    (isolated_env / "nawi.toml").write_text('key = "fileKey"\nurl = "http://file.local"\n')
    monkeypatch.setenv("BLOCKFROST_KEY", "envKey")
    monkeypatch.setenv("BLOCKFROST_URL", "http://env.local")
    settings = get_settings(Network("mainnet"))
    assert settings.blockfrost_key == "envKey"
    assert settings.blockfrost_url == "http://env.local"


def test_missing_key_raises_config_error():
    with pytest.raises(ConfigError, match="BLOCKFROST_KEY"):
        get_settings(Network("mainnet"))


def test_custom_testnet_needs_url(monkeypatch):
    monkeypatch.setenv("BLOCKFROST_KEY", "k")
    with pytest.raises(ConfigError, match="testnet:7"):
        get_settings(Network("testnet", 7))
    monkeypatch.setenv("BLOCKFROST_URL", "http://localhost:3000")
    assert get_settings(Network("testnet", 7)).blockfrost_url == "http://localhost:3000"


def test_invalid_toml_is_config_error(isolated_env, monkeypatch):
    (isolated_env / "nawi.toml").write_text("key = \n")
    monkeypatch.setenv("BLOCKFROST_KEY", "k")
    with pytest.raises(ConfigError, match="Failed to read configuration file"):
        get_settings(Network("mainnet"))


def test_bad_timeout_env(monkeypatch):
    monkeypatch.setenv("BLOCKFROST_KEY", "k")
    monkeypatch.setenv("NAWI_REQUEST_TIMEOUT_SEC", "soon")
    with pytest.raises(ConfigError, match="NAWI_REQUEST_TIMEOUT_SEC"):
        get_settings(Network("mainnet"))
