"""Tests for shared/config.py."""

import pytest
from unittest.mock import patch
import os

from shared.config import (
    DEFAULT_JWT_SECRET,
    Settings,
    get_settings,
    get_validated_settings,
)
from shared.exceptions import ConfigurationError


class TestSettings:
    def test_default_values(self):
        """Settings should have sensible defaults."""
        settings = Settings(_env_file=None)
        assert settings.app_name == "Hemera Access API"
        assert settings.debug is False
        assert settings.port == 8000
        assert settings.db_port == 5432
        assert settings.db_pool_max == 20
        assert settings.db_statement_timeout == 30
        assert settings.db_retry_attempts == 3
        assert settings.jwt_issuer == "hemera-system"
        assert settings.jwt_audience == "hemera-users"
        assert settings.access_token_expire_minutes == 15
        assert settings.refresh_token_expire_days == 7
        assert settings.password_hash_rounds == 12
        assert settings.session_refresh_threshold_seconds == 300

    def test_loads_from_env(self):
        """Settings should load from environment variables."""
        with patch.dict(os.environ, {"DEBUG": "true", "PORT": "9000"}):
            settings = Settings(_env_file=None)
            assert settings.debug is True
            assert settings.port == 9000

    def test_loads_database_config_from_env(self):
        with patch.dict(os.environ, {
            "DB_HOST": "db.internal",
            "DB_PORT": "6543",
            "DB_NAME": "hemera",
            "DB_USER": "app",
            "DB_PASSWORD": "pw",
            "DB_RETRY_DELAY": "0.5",
        }):
            settings = Settings(_env_file=None)
            assert settings.db_host == "db.internal"
            assert settings.db_port == 6543
            assert settings.db_name == "hemera"
            assert settings.db_retry_delay == 0.5


class TestValidateConfig:
    def test_valid_settings(self, settings):
        assert settings.validate_config() == []
        assert settings.require_valid() is settings

    def test_missing_database_values(self, settings):
        broken = settings.model_copy(update={"db_name": "", "db_password": ""})
        errors = broken.validate_config()
        assert "DB_NAME is required" in errors
        assert "DB_PASSWORD is required" in errors

    def test_port_out_of_range(self, settings):
        broken = settings.model_copy(update={"db_port": 70000})
        assert "DB_PORT must be between 1 and 65535" in broken.validate_config()

    def test_pool_bounds(self, settings):
        broken = settings.model_copy(update={"db_pool_min": 30, "db_pool_max": 20})
        assert "DB_POOL_MIN must be between 0 and DB_POOL_MAX" in broken.validate_config()

    def test_placeholder_secret_rejected(self, settings):
        broken = settings.model_copy(update={"jwt_secret": DEFAULT_JWT_SECRET})
        assert "JWT_SECRET must be changed from default value" in broken.validate_config()

    def test_short_secret_rejected(self, settings):
        broken = settings.model_copy(update={"jwt_secret": "short"})
        assert any("at least 32 characters" in e for e in broken.validate_config())

    def test_require_valid_raises(self, settings):
        broken = settings.model_copy(update={"jwt_secret": ""})
        with pytest.raises(ConfigurationError) as exc_info:
            broken.require_valid()
        assert exc_info.value.errors

    def test_get_validated_settings_uses_given_settings(self, settings):
        assert get_validated_settings(settings) is settings


class TestSummary:
    def test_summary_contains_no_secrets(self, settings):
        summary = settings.summary()
        text = repr(summary)
        assert settings.jwt_secret not in text
        assert settings.db_password not in text
        assert summary["jwt"]["algorithm"] == "HS256"
        assert summary["jwt"]["secret_length"] == len(settings.jwt_secret)
        assert summary["database"]["name"] == "hemera_test"


class TestGetSettings:
    def test_get_settings_returns_settings_instance(self):
        """get_settings should return a Settings instance."""
        get_settings.cache_clear()
        settings = get_settings()
        assert isinstance(settings, Settings)

    def test_get_settings_caches(self):
        """get_settings should return cached instance."""
        get_settings.cache_clear()
        settings1 = get_settings()
        settings2 = get_settings()
        assert settings1 is settings2
