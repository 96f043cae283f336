"""Tests for engine settings validation and environment loading."""

import pytest
from pydantic import ValidationError

from seedpay.domain.entities import AddressKind, Network
from seedpay.envs.engine_env import Settings, get_settings
from tests.conftest import TEST_MNEMONIC


def test_defaults():
    settings = Settings(mnemonic=TEST_MNEMONIC)
    assert settings.network is Network.MAINNET
    assert settings.address_kind is AddressKind.P2WPKH
    assert settings.confirmations_required == 3
    assert settings.indexer_base_url is None
    assert settings.webhook_secret is None


def test_mnemonic_whitespace_is_normalized():
    settings = Settings(mnemonic="  " + TEST_MNEMONIC.replace(" ", "\n  ") + " ")
    assert settings.mnemonic == TEST_MNEMONIC


@pytest.mark.parametrize(
    "mnemonic",
    [
        "",
        "abandon " * 11 + "abandon",
        "abandon " * 11 + "notaword",
    ],
)
def test_invalid_mnemonic_rejected(mnemonic):
    with pytest.raises(ValidationError):
        Settings(mnemonic=mnemonic)


@pytest.mark.parametrize(
    "field,value",
    [
        ("database_url", "postgres://localhost/db"),
        ("default_account", 2**31),
        ("confirmations_required", 0),
        ("payment_ttl_seconds", 0),
        ("poll_interval_seconds", 0),
        ("chain_query_retries", -1),
        ("log_level", "CHATTY"),
        ("network", "regtest"),
    ],
)
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(mnemonic=TEST_MNEMONIC, **{field: value})


def test_get_settings_reads_prefixed_environment(monkeypatch):
    monkeypatch.setenv("SEEDPAY_MNEMONIC", TEST_MNEMONIC)
    monkeypatch.setenv("SEEDPAY_NETWORK", "testnet")
    monkeypatch.setenv("SEEDPAY_ADDRESS_KIND", "p2pkh")
    monkeypatch.setenv("SEEDPAY_CONFIRMATIONS_REQUIRED", "6")
    monkeypatch.setenv("SEEDPAY_POLL_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("SEEDPAY_INDEXER_BASE_URL", "")
    monkeypatch.setenv("SEEDPAY_API_CORS_ORIGINS", "https://a.test, https://b.test")
    monkeypatch.setenv("SEEDPAY_LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.network is Network.TESTNET
    assert settings.address_kind is AddressKind.P2PKH
    assert settings.confirmations_required == 6
    assert settings.poll_interval_seconds == 2.5
    assert settings.indexer_base_url is None
    assert settings.api_cors_origins == ["https://a.test", "https://b.test"]
    assert settings.log_level == "DEBUG"


def test_get_settings_requires_mnemonic(monkeypatch):
    monkeypatch.delenv("SEEDPAY_MNEMONIC", raising=False)
    with pytest.raises(ValidationError):
        get_settings()
