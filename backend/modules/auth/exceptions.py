"""
Authentication module exceptions.

These exceptions are raised by the auth module and can be caught
by API error handlers to return appropriate HTTP responses.
"""

from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)


class InvalidTokenError(AuthenticationError):
    """Raised when a JWT token is invalid or malformed."""

    def __init__(self, message: str = "Invalid authentication token"):
        super().__init__(message, code="INVALID_TOKEN")


class ExpiredTokenError(AuthenticationError):
    """Raised when a JWT token has expired."""

    def __init__(self, message: str = "Authentication token has expired"):
        super().__init__(message, code="TOKEN_EXPIRED")


class MissingTokenError(AuthenticationError):
    """Raised when no authentication token is provided."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="MISSING_TOKEN")


class InvalidCredentialsError(AuthenticationError):
    """Email/password pair did not match. Same message for both causes."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class AccountExistsError(ValidationError):
    """Raised when registering an email that is already taken."""

    def __init__(self, email: str):
        super().__init__(
            "An account with this email already exists",
            code="ACCOUNT_EXISTS",
            details={"email": email},
        )


class AccountNotFoundError(NotFoundError):
    """Raised when the account doesn't exist in the database."""

    def __init__(self, account_id: str):
        super().__init__(
            "Account not found",
            code="ACCOUNT_NOT_FOUND",
            details={"account_id": account_id},
        )


class InvalidPasswordInputError(ValidationError):
    """Raised when a password cannot be hashed (empty, too long or unencodable)."""

    def __init__(self, message: str = "Password is empty or too long"):
        super().__init__(message, code="INVALID_PASSWORD_INPUT")


class InsufficientPermissionsError(AuthorizationError):
    """Raised when the account lacks the admin privilege."""

    def __init__(self, message: str = "Administrator privileges required"):
        super().__init__(message, code="INSUFFICIENT_PERMISSIONS")
