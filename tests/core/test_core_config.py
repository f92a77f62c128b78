"""Tests for wotid.core.config module."""

from __future__ import annotations

import pytest

from wotid.core.config import (
    DEFAULT_SUBJECT_DIRECTORY,
    CoreSettings,
    clear_config_cache,
    get_config,
)
from wotid.core.exceptions import ConfigException


class TestDefaults:
    """Tests for default settings values."""

    def test_ledger_defaults(self):
        settings = CoreSettings()
        assert settings.ledger_endpoint == "http://127.0.0.1:9000"
        assert settings.ledger_resolve_method == "identity_resolveDid"
        assert settings.ledger_not_found_code == -32004
        assert settings.ledger_timeout_seconds == 5.0
        assert settings.identity_package_id is None

    def test_challenge_defaults(self):
        settings = CoreSettings()
        assert settings.challenge_ttl_seconds == 300
        assert settings.challenge_store == "memory"

    def test_default_directory_has_stub_subject(self):
        settings = CoreSettings()
        assert settings.subject_directory == DEFAULT_SUBJECT_DIRECTORY
        assert settings.subject_directory_url is None


class TestEnvironment:
    """Tests for environment variable loading."""

    def test_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("WOTID_LEDGER_ENDPOINT", "http://ledger:9000")
        monkeypatch.setenv("WOTID_CHALLENGE_TTL_SECONDS", "60")
        settings = CoreSettings()
        assert settings.ledger_endpoint == "http://ledger:9000"
        assert settings.challenge_ttl_seconds == 60

    def test_legacy_aliases(self, monkeypatch):
        monkeypatch.setenv("API_ENDPOINT", "http://legacy:9000")
        monkeypatch.setenv("IOTA_IDENTITY_PKG_ID", "0xpkg")
        settings = CoreSettings()
        assert settings.ledger_endpoint == "http://legacy:9000"
        assert settings.identity_package_id == "0xpkg"

    def test_directory_from_json(self, monkeypatch):
        monkeypatch.setenv("WOTID_SUBJECT_DIRECTORY", '{"Alice@Example.com ": "did:iota:tst:0xalice"}')
        settings = CoreSettings()
        assert settings.subject_directory == {"alice@example.com": "did:iota:tst:0xalice"}

    def test_store_backend_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("WOTID_CHALLENGE_STORE", "REDIS")
        assert CoreSettings().challenge_store == "redis"


class TestValidation:
    """Tests for settings validation."""

    @pytest.mark.parametrize(
        "field_name",
        ["challenge_ttl_seconds", "ledger_timeout_seconds", "oracle_timeout_seconds"],
    )
    def test_non_positive_values_rejected(self, field_name):
        with pytest.raises(ValueError):
            CoreSettings(**{field_name: 0})

    def test_unknown_store_backend_rejected(self):
        with pytest.raises(ValueError, match="Unknown challenge store backend"):
            CoreSettings(challenge_store="memcached")

    def test_get_config_wraps_validation_errors(self, monkeypatch):
        monkeypatch.setenv("WOTID_CHALLENGE_TTL_SECONDS", "-5")
        with pytest.raises(ConfigException) as exc_info:
            get_config()
        assert "CHALLENGE_TTL_SECONDS" in str(exc_info.value).upper()
        assert len(exc_info.value.missing_vars) == 1


class TestSingleton:
    """Tests for the cached settings instance."""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_clear_config_cache(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("WOTID_CHALLENGE_TTL_SECONDS", "42")
        assert get_config().challenge_ttl_seconds == first.challenge_ttl_seconds

        clear_config_cache()
        assert get_config().challenge_ttl_seconds == 42
