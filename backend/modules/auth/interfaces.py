"""
Authentication module interfaces.

Other modules should depend on these protocols, not the concrete
implementations. This enables testing with fakes and mocks.
"""

from contextlib import AbstractContextManager
from typing import Any, Optional, Protocol, runtime_checkable

from shared.models import AuthenticatedUser

from .models import (
    AccountRecord,
    AuthResult,
    LoginCredentials,
    Profile,
    RegistrationData,
    SessionInfo,
)


@runtime_checkable
class IAuthService(Protocol):
    """
    Interface for authentication operations.

    This protocol defines the contract that the auth module exposes
    to other modules. Implementations must provide all these methods.
    """

    def register(self, data: RegistrationData) -> AuthResult:
        """
        Create an account (and optional profile) and sign it in.

        Returns:
            AuthResult with account, profile and tokens on success, or a
            user-safe error.
        """
        ...

    def login(self, credentials: LoginCredentials) -> AuthResult:
        """
        Authenticate with email and password.

        Unknown email and wrong password produce the same error.
        """
        ...

    def refresh_token(self, refresh_token: str) -> AuthResult:
        """Exchange a refresh token for a new pair, re-reading the account."""
        ...

    def change_password(
        self, account_id: str, current_password: str, new_password: str
    ) -> AuthResult:
        ...

    def request_password_reset(self, email: str) -> Optional[str]:
        """Reset token for a known email, None otherwise."""
        ...

    def reset_password(self, token: str, new_password: str) -> AuthResult:
        ...

    def verify_session(self, access_token: str) -> Optional[SessionInfo]:
        ...

    def validate_token(self, token: Optional[str]) -> AuthenticatedUser:
        """
        Validate an access token and return the authenticated account.

        Args:
            token: Access token, with or without a "Bearer " prefix

        Returns:
            AuthenticatedUser built from the token claims

        Raises:
            MissingTokenError: If no token is provided
            ExpiredTokenError: If the token is genuine but expired
            InvalidTokenError: For any other verification failure
        """
        ...


@runtime_checkable
class IAccountRepository(Protocol):
    """Persistence of accounts and profiles."""

    def find_by_email(self, email: str) -> Optional[AccountRecord]:
        ...

    def find_by_id(self, account_id: str) -> Optional[AccountRecord]:
        ...

    def create_account(self, email: str, password_hash: str) -> AccountRecord:
        ...

    def create_profile(self, account_id: str, fields: dict[str, Any]) -> Profile:
        ...

    def get_profile(self, account_id: str) -> Optional[Profile]:
        ...

    def update_last_sign_in(self, account_id: str) -> None:
        ...

    def update_password_hash(self, account_id: str, password_hash: str) -> None:
        ...

    def is_admin(self, account_id: str) -> bool:
        ...

    def transaction(self) -> AbstractContextManager["IAccountRepository"]:
        """Repository bound to one transaction; commits on clean exit."""
        ...


@runtime_checkable
class ISessionStorage(Protocol):
    """Key-value store holding the serialized client session."""

    def read(self) -> Optional[str]:
        ...

    def write(self, blob: str) -> None:
        ...

    def delete(self) -> None:
        ...
