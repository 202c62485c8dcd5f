from __future__ import annotations

import pytest

from credential_service.core.config import load_settings

_ENV_VARS = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "PORT",
    "REDIS_URL",
    "LEDGER_RPC_URL",
    "LEDGER_SIGNER_ADDRESS",
    "LEDGER_CONFIRM_TIMEOUT",
    "LEDGER_POLL_INTERVAL",
    "CONTENT_STORE_API_URL",
    "CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ---- valid values ----


def test_load_settings_defaults() -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.port == 8000
    assert settings.redis_url is None
    assert settings.ledger_rpc_url is None
    assert settings.content_store_api_url is None
    assert settings.ledger_confirm_timeout == 30.0
    assert settings.cors_origins == ("http://localhost:5173",)


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setenv("LOG_JSON", "1")
    monkeypatch.setenv("LEDGER_RPC_URL", "http://ledger:8545")
    monkeypatch.setenv("LEDGER_CONFIRM_TIMEOUT", "12.5")
    monkeypatch.setenv("CONTENT_STORE_API_URL", "https://api.pinata.cloud")
    settings = load_settings()
    assert settings.is_prod
    assert settings.log_level == "error"
    assert settings.log_json is True
    assert settings.ledger_rpc_url == "http://ledger:8545"
    assert settings.ledger_confirm_timeout == 12.5
    assert settings.content_store_api_url == "https://api.pinata.cloud"


def test_load_settings_normalizes_case_and_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "  TEST ")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LEDGER_SIGNER_ADDRESS", "0x00000000000000000000000000000000000000AB")
    settings = load_settings()
    assert settings.is_test
    assert settings.log_level == "debug"
    assert settings.ledger_signer_address == "0x00000000000000000000000000000000000000ab"


def test_cors_origins_split_on_commas(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
    assert load_settings().cors_origins == ("https://a.example", "https://b.example")


def test_empty_optional_urls_mean_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REDIS_URL", "  ")
    monkeypatch.setenv("LEDGER_RPC_URL", "")
    settings = load_settings()
    assert settings.redis_url is None
    assert settings.ledger_rpc_url is None


# ---- invalid values ----


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("APP_ENV", "staging", "APP_ENV must be dev|test|prod"),
        ("LOG_LEVEL", "verbose", "LOG_LEVEL must be"),
        ("LOG_JSON", "yes", "LOG_JSON must be true|false"),
        ("PORT", "eighty", "PORT must be an integer"),
        ("LEDGER_CONFIRM_TIMEOUT", "soon", "LEDGER_CONFIRM_TIMEOUT must be a number"),
        ("LEDGER_CONFIRM_TIMEOUT", "-1", "LEDGER_CONFIRM_TIMEOUT must be >="),
        ("LEDGER_POLL_INTERVAL", "0", "LEDGER_POLL_INTERVAL must be >="),
    ],
)
def test_load_settings_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=message):
        load_settings()
