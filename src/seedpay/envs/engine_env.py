from __future__ import annotations

import logging
import os
from typing import Optional

from mnemonic import Mnemonic
from pydantic import BaseModel, field_validator

from ..domain.entities import AddressKind, Network

ENV_PREFIX = "SEEDPAY_"


class Settings(BaseModel):
    database_url: str = "redis://localhost:6379/0"

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    api_workers: int = 1
    api_cors_origins: list[str] = ["*"]

    app_name: str = "seedpay"
    app_version: str = "0.1.0"

    mnemonic: str
    passphrase: str = ""
    network: Network = Network.MAINNET
    address_kind: AddressKind = AddressKind.P2WPKH
    default_account: int = 0
    confirmations_required: int = 3
    payment_ttl_seconds: int = 3600

    indexer_base_url: Optional[str] = None
    poll_interval_seconds: float = 30.0
    chain_query_timeout_seconds: float = 10.0
    chain_query_retries: int = 3
    chain_query_backoff_seconds: float = 0.5

    webhook_secret: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("mnemonic")
    @classmethod
    def validate_mnemonic(cls, v: str) -> str:
        normalized = " ".join(v.split())
        if not normalized:
            raise ValueError("Mnemonic cannot be empty")
        if not Mnemonic("english").check(normalized):
            raise ValueError("Mnemonic has unknown words or a bad checksum")
        return normalized

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Database URL must be a redis:// URL")
        return v

    @field_validator("default_account")
    @classmethod
    def validate_default_account(cls, v: int) -> int:
        if not 0 <= v < 2**31:
            raise ValueError("Default account must be in [0, 2^31)")
        return v

    @field_validator("confirmations_required", "payment_ttl_seconds", "api_workers")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator(
        "poll_interval_seconds",
        "chain_query_timeout_seconds",
        "chain_query_backoff_seconds",
    )
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Durations must be positive")
        return v

    @field_validator("chain_query_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Retries cannot be negative")
        return v

    @field_validator("indexer_base_url", "webhook_secret")
    @classmethod
    def empty_as_unset(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


def _env(name: str) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}{name}")


def get_settings() -> Settings:
    values: dict[str, object] = {}

    for field, env_name in (
        ("database_url", "DATABASE_URL"),
        ("api_host", "API_HOST"),
        ("app_name", "APP_NAME"),
        ("app_version", "APP_VERSION"),
        ("mnemonic", "MNEMONIC"),
        ("passphrase", "PASSPHRASE"),
        ("network", "NETWORK"),
        ("address_kind", "ADDRESS_KIND"),
        ("indexer_base_url", "INDEXER_BASE_URL"),
        ("webhook_secret", "WEBHOOK_SECRET"),
        ("log_level", "LOG_LEVEL"),
    ):
        raw = _env(env_name)
        if raw is not None:
            values[field] = raw

    for field, env_name in (
        ("api_port", "API_PORT"),
        ("api_workers", "API_WORKERS"),
        ("default_account", "DEFAULT_ACCOUNT"),
        ("confirmations_required", "CONFIRMATIONS_REQUIRED"),
        ("payment_ttl_seconds", "PAYMENT_TTL_SECONDS"),
        ("chain_query_retries", "CHAIN_QUERY_RETRIES"),
    ):
        raw = _env(env_name)
        if raw is not None:
            values[field] = int(raw)

    for field, env_name in (
        ("poll_interval_seconds", "POLL_INTERVAL_SECONDS"),
        ("chain_query_timeout_seconds", "CHAIN_QUERY_TIMEOUT_SECONDS"),
        ("chain_query_backoff_seconds", "CHAIN_QUERY_BACKOFF_SECONDS"),
    ):
        raw = _env(env_name)
        if raw is not None:
            values[field] = float(raw)

    api_debug_str = _env("API_DEBUG")
    if api_debug_str is not None:
        values["api_debug"] = api_debug_str.lower() == "true"

    api_cors_origins_str = _env("API_CORS_ORIGINS")
    if api_cors_origins_str is not None:
        values["api_cors_origins"] = [
            origin.strip() for origin in api_cors_origins_str.split(",") if origin
        ]

    return Settings(**values)
