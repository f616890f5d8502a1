"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together all module
implementations. Each module exposes its service through an interface,
and this file creates the concrete implementations.

Only settings are process-wide (cached); everything else is built here
explicitly and shared through the container.
"""

from typing import TYPE_CHECKING

from shared.config import Settings, get_settings

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from shared.database import ConnectionManager
    from modules.auth.interfaces import IAccountRepository, IAuthService
    from modules.auth.passwords import PasswordManager
    from modules.auth.tokens import TokenManager


class ServiceContainer:
    """
    Container for all service instances.

    This class manages the lifecycle of service instances and their
    dependencies. Services are created lazily on first access.

    All services are cached as singletons within the container.
    Use reset() to close the pool and clear all cached services.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings
        self._connections: "ConnectionManager | None" = None
        self._passwords: "PasswordManager | None" = None
        self._tokens: "TokenManager | None" = None
        self._accounts: "IAccountRepository | None" = None
        self._auth_service: "IAuthService | None" = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def connections(self) -> "ConnectionManager":
        """Get the connection manager; opens the pool on first access."""
        if self._connections is None:
            from shared.database import ConnectionManager
            self._connections = ConnectionManager.from_settings(self.settings)
        return self._connections

    @property
    def passwords(self) -> "PasswordManager":
        if self._passwords is None:
            from modules.auth.passwords import PasswordManager
            self._passwords = PasswordManager(rounds=self.settings.password_hash_rounds)
        return self._passwords

    @property
    def tokens(self) -> "TokenManager":
        if self._tokens is None:
            from modules.auth.tokens import TokenManager
            self._tokens = TokenManager.from_settings(self.settings)
        return self._tokens

    @property
    def accounts(self) -> "IAccountRepository":
        if self._accounts is None:
            from modules.auth.repository import AccountRepository
            self._accounts = AccountRepository(self.connections)
        return self._accounts

    @property
    def auth(self) -> "IAuthService":
        """Get the auth service instance."""
        if self._auth_service is None:
            from modules.auth.service import AuthService
            self._auth_service = AuthService(
                accounts=self.accounts,
                passwords=self.passwords,
                tokens=self.tokens,
            )
        return self._auth_service

    def reset(self) -> None:
        """
        Close the pool and reset all cached services.

        This is primarily for testing and shutdown.
        """
        if self._connections is not None:
            self._connections.close()
        self._connections = None
        self._passwords = None
        self._tokens = None
        self._accounts = None
        self._auth_service = None


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def reset_container() -> None:
    """
    Reset the service container.

    Closes the current container's pool, so the next call to
    get_container() creates a fresh container with new service instances.
    """
    global _container
    if _container is not None:
        _container.reset()
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_auth_service() -> "IAuthService":
    """FastAPI dependency for auth service."""
    return get_container().auth
