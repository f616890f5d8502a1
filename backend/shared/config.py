"""
Centralized configuration for the Hemera access layer.

All settings are loaded from environment variables (or a .env file).
Settings are namespaced by concern (DB_*, JWT_*, SESSION_*).
"""

from functools import lru_cache
from typing import Any, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


# Placeholder shipped in sample configs; never acceptable as a real secret
DEFAULT_JWT_SECRET = "your-super-secret-jwt-key-change-this-in-production"
MIN_JWT_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Hemera Access API"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    # CORS settings
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Database
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = ""
    db_user: str = ""
    db_password: str = ""
    db_sslmode: str = "prefer"
    db_pool_min: int = 1
    db_pool_max: int = 20
    db_connect_timeout: int = 10  # seconds
    db_statement_timeout: int = 30  # seconds
    db_retry_attempts: int = 3
    db_retry_delay: float = 1.0  # seconds, doubled per attempt
    db_acting_user_setting: str = "app.current_user_id"
    db_slow_query_ms: int = 1000  # statements slower than this are logged

    # Tokens
    jwt_secret: str = ""
    jwt_issuer: str = "hemera-system"
    jwt_audience: str = "hemera-users"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    password_reset_expire_minutes: int = 60

    # Passwords
    password_hash_rounds: int = 12

    # Client-side session cache
    session_file: str = ".hemera_session.json"
    session_refresh_threshold_seconds: int = 300

    def validate_config(self) -> list[str]:
        """
        Check the settings required to start serving.

        Returns:
            List of human-readable problems; empty when the config is usable.
        """
        errors: list[str] = []

        if not self.db_host:
            errors.append("DB_HOST is required")
        if not self.db_name:
            errors.append("DB_NAME is required")
        if not self.db_user:
            errors.append("DB_USER is required")
        if not self.db_password:
            errors.append("DB_PASSWORD is required")
        if not 1 <= self.db_port <= 65535:
            errors.append("DB_PORT must be between 1 and 65535")
        if self.db_pool_max < 1:
            errors.append("DB_POOL_MAX must be greater than 0")
        if self.db_pool_min < 0 or self.db_pool_min > self.db_pool_max:
            errors.append("DB_POOL_MIN must be between 0 and DB_POOL_MAX")
        if self.db_statement_timeout < 1:
            errors.append("DB_STATEMENT_TIMEOUT must be greater than 0")

        if self.jwt_secret == DEFAULT_JWT_SECRET:
            errors.append("JWT_SECRET must be changed from default value")
        elif len(self.jwt_secret) < MIN_JWT_SECRET_LENGTH:
            errors.append(
                f"JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters long"
            )

        return errors

    def require_valid(self) -> "Settings":
        """Raise ConfigurationError unless validate_config() is clean."""
        errors = self.validate_config()
        if errors:
            raise ConfigurationError(errors)
        return self

    def summary(self) -> dict[str, Any]:
        """Configuration summary for diagnostics. Contains no secrets."""
        return {
            "database": {
                "host": self.db_host,
                "port": self.db_port,
                "name": self.db_name,
                "user": self.db_user,
                "sslmode": self.db_sslmode,
                "pool_max": self.db_pool_max,
            },
            "app": {
                "name": self.app_name,
                "version": self.app_version,
                "log_level": self.log_level,
            },
            "jwt": {
                "issuer": self.jwt_issuer,
                "audience": self.jwt_audience,
                "algorithm": "HS256",
                "secret_length": len(self.jwt_secret),
            },
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


def get_validated_settings(settings: Optional[Settings] = None) -> Settings:
    """Load settings and fail fast if they cannot be used."""
    return (settings or get_settings()).require_valid()
