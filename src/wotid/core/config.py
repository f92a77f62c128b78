# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Core configuration - centralized config for the wotid package.

All environment-based configuration flows through this module. The settings
object is built once at startup and passed to the resolver, challenge store
and mapping oracle builders; nothing in the verification engine reads the
environment on its own.

Usage:
    from wotid.core.config import get_config
    config = get_config()

    endpoint = config.ledger_endpoint
    ttl = config.challenge_ttl_seconds
"""

from __future__ import annotations

from typing import TypeVar

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigException

# Stub directory entry carried over from the first deployment, where email
# resolution was not yet backed by the ledger contract.
DEFAULT_SUBJECT_DIRECTORY = {
    "user@example.com": "did:iota:tst:0xplaceholderdidforuseratolecom",
}


class CoreSettings(BaseSettings):
    """Core configuration settings for the identity engine.

    Settings use the WOTID_ prefix. The ledger endpoint and identity package
    id also accept the legacy API_ENDPOINT / IOTA_IDENTITY_PKG_ID names.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # LEDGER SETTINGS
    # ==========================================================================

    ledger_endpoint: str = Field(
        default="http://127.0.0.1:9000",
        description="JSON-RPC endpoint of the ledger node used for DID resolution",
        validation_alias=AliasChoices("WOTID_LEDGER_ENDPOINT", "API_ENDPOINT"),
    )
    ledger_resolve_method: str = Field(
        default="identity_resolveDid",
        description="JSON-RPC method that returns a DID document",
        validation_alias="WOTID_LEDGER_RESOLVE_METHOD",
    )
    ledger_not_found_code: int = Field(
        default=-32004,
        description="JSON-RPC error code the ledger uses for unknown DIDs",
        validation_alias="WOTID_LEDGER_NOT_FOUND_CODE",
    )
    ledger_timeout_seconds: float = Field(
        default=5.0,
        description="Total timeout for one ledger resolution call",
        validation_alias="WOTID_LEDGER_TIMEOUT_SECONDS",
    )
    identity_package_id: str | None = Field(
        default=None,
        description="On-ledger identity package id (sent along with resolution calls when set)",
        validation_alias=AliasChoices("WOTID_IDENTITY_PKG_ID", "IOTA_IDENTITY_PKG_ID"),
    )

    # ==========================================================================
    # CHALLENGE SETTINGS
    # ==========================================================================

    challenge_ttl_seconds: int = Field(
        default=300,
        description="Lifetime of an issued challenge (default: 5 minutes)",
        validation_alias="WOTID_CHALLENGE_TTL_SECONDS",
    )
    challenge_store: str = Field(
        default="memory",
        description="Challenge store backend: 'memory' or 'redis'",
        validation_alias="WOTID_CHALLENGE_STORE",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis URL for the redis challenge store",
        validation_alias="WOTID_REDIS_URL",
    )

    # ==========================================================================
    # SUBJECT MAPPING SETTINGS
    # ==========================================================================

    subject_directory: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SUBJECT_DIRECTORY),
        description="Static email -> DID directory (JSON object)",
        validation_alias="WOTID_SUBJECT_DIRECTORY",
    )
    subject_directory_url: str | None = Field(
        default=None,
        description="Base URL of an external subject directory; overrides the static directory",
        validation_alias="WOTID_SUBJECT_DIRECTORY_URL",
    )
    oracle_timeout_seconds: float = Field(
        default=5.0,
        description="Total timeout for one subject directory lookup",
        validation_alias="WOTID_ORACLE_TIMEOUT_SECONDS",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="WOTID_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="WOTID_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="WOTID_LOG_FILE",
    )

    @field_validator(
        "ledger_timeout_seconds",
        "oracle_timeout_seconds",
        "challenge_ttl_seconds",
    )
    @classmethod
    def _must_be_positive(cls, value: float, info) -> float:
        if value <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return value

    @field_validator("challenge_store")
    @classmethod
    def _known_store_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("memory", "redis"):
            raise ValueError(f"Unknown challenge store backend '{value}' (expected memory or redis)")
        return value

    @field_validator("subject_directory")
    @classmethod
    def _normalize_directory(cls, value: dict[str, str]) -> dict[str, str]:
        return {hint.strip().lower(): did for hint, did in value.items()}


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None

SettingsT = TypeVar("SettingsT", bound=BaseSettings)


def load_settings(settings_cls: type[SettingsT]) -> SettingsT:
    """Build a settings object from the environment.

    Raises:
        ConfigException: Naming every setting that failed validation.
    """
    try:
        return settings_cls()
    except ValidationError as e:
        invalid = [".".join(str(part) for part in error["loc"]) for error in e.errors()]
        raise ConfigException(f"Invalid configuration: {', '.join(invalid)}", invalid) from e


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.

    Raises:
        ConfigException: If the environment holds invalid settings.
    """
    global _config
    if _config is None:
        _config = load_settings(CoreSettings)
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
