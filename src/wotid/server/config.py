# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Server configuration using pydantic-settings."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from pydantic import AliasChoices, Field, field_validator

from wotid.core.config import CoreSettings, load_settings


def get_package_version() -> str:
    """Get the package version from installed metadata.

    Returns the version from pyproject.toml when installed,
    or a dev fallback when running from source without install.
    """
    try:
        return version("wotid")
    except PackageNotFoundError:
        return "0.0.0-dev"


class ServerSettings(CoreSettings):
    """Configuration for the wot.id HTTP service.

    Inherits core settings (ledger, challenge store, subject mapping, logging)
    and adds HTTP, CORS and health-check settings.
    """

    # Server settings
    host: str = Field(default="127.0.0.1", description="Host to bind to", validation_alias="WOTID_HOST")
    port: int = Field(
        default=8081,
        description="Port to bind to",
        validation_alias=AliasChoices("WOTID_PORT", "PORT"),
    )

    # CORS settings
    allowed_origins: list[str] = Field(
        default=[],
        description="Allowed CORS origins. Empty = same-origin only. Set to ['*'] for development.",
        validation_alias="WOTID_ALLOWED_ORIGINS",
    )

    # Health checks
    health_dependencies: dict[str, str] = Field(
        default_factory=dict,
        description="Extra dependencies to poll for /health, as a JSON object of name -> health URL",
        validation_alias="WOTID_HEALTH_DEPENDENCIES",
    )
    health_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for each dependency probe in /health",
        validation_alias="WOTID_HEALTH_TIMEOUT_SECONDS",
    )

    server_name: str = Field(default="wotid", description="Service name", validation_alias="WOTID_SERVER_NAME")
    server_version: str = Field(default_factory=get_package_version, description="Server version")

    @field_validator("health_timeout_seconds")
    @classmethod
    def _timeout_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("health_timeout_seconds must be positive")
        return value

    @property
    def base_url(self) -> str:
        """Get the base URL for the server."""
        return f"http://{self.host}:{self.port}"


# Global settings instance - lazy loaded
_settings: ServerSettings | None = None


def get_settings() -> ServerSettings:
    """Get the global settings instance.

    Raises:
        ConfigException: If the environment holds invalid settings.
    """
    global _settings
    if _settings is None:
        _settings = load_settings(ServerSettings)
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    global _settings
    _settings = None
