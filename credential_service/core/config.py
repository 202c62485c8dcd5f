from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so casting and validation live in one place
    return os.environ.get(name, default).strip()


def _getenv_float(name: str, default: str, *, minimum: float) -> float:
    raw = _getenv(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {raw!r})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    redis_url: str | None
    # Ledger gateway (None selects the in-memory ledger)
    ledger_rpc_url: str | None = None
    ledger_rpc_token: str = ""
    ledger_signer_address: str = "0x00000000000000000000000000000000000000a1"
    ledger_confirm_timeout: float = 30.0
    ledger_poll_interval: float = 1.0
    # Content store (None selects the in-memory store)
    content_store_api_url: str | None = None
    content_store_gateway_url: str = "https://gateway.pinata.cloud"
    content_store_api_key: str = ""
    content_store_secret_key: str = ""
    # PEM-encoded EC P-256 private key; empty means an ephemeral key
    token_private_key_pem: str = ""
    cors_origins: tuple[str, ...] = field(default=("http://localhost:5173",))

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    confirm_timeout = _getenv_float("LEDGER_CONFIRM_TIMEOUT", "30", minimum=0.0)
    poll_interval = _getenv_float("LEDGER_POLL_INTERVAL", "1", minimum=0.01)

    cors_origins = tuple(
        o.strip()
        for o in _getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
        if o.strip()
    )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        redis_url=_getenv("REDIS_URL", "") or None,
        ledger_rpc_url=_getenv("LEDGER_RPC_URL", "") or None,
        ledger_rpc_token=_getenv("LEDGER_RPC_TOKEN", ""),
        ledger_signer_address=_getenv(
            "LEDGER_SIGNER_ADDRESS", "0x00000000000000000000000000000000000000a1"
        ).lower(),
        ledger_confirm_timeout=confirm_timeout,
        ledger_poll_interval=poll_interval,
        content_store_api_url=_getenv("CONTENT_STORE_API_URL", "") or None,
        content_store_gateway_url=_getenv(
            "CONTENT_STORE_GATEWAY_URL", "https://gateway.pinata.cloud"
        ),
        content_store_api_key=_getenv("CONTENT_STORE_API_KEY", ""),
        content_store_secret_key=_getenv("CONTENT_STORE_SECRET_KEY", ""),
        token_private_key_pem=_getenv("TOKEN_PRIVATE_KEY_PEM", ""),
        cors_origins=cors_origins,
    )


SETTINGS = load_settings()
