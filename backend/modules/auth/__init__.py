"""
Authentication module.

Handles credential storage, password hashing, JWT access/refresh token
lifecycles and the client-side session cache.

Public API:
- IAuthService: Interface for auth operations
- AuthService: Register, login, refresh, password change/reset
- PasswordManager, TokenManager, SessionManager
- AccountRepository, PrivilegeResolver
- Auth exceptions: InvalidTokenError, ExpiredTokenError, etc.
"""

from .interfaces import IAuthService, IAccountRepository, ISessionStorage
from .models import (
    Account,
    AccountRecord,
    AuthResult,
    LoginCredentials,
    PasswordStrength,
    PasswordValidationResult,
    Profile,
    RegistrationData,
    SessionInfo,
    SessionState,
    SessionStatus,
    StoredSession,
    TokenClaims,
    TokenPair,
    TokenType,
    TokenVerification,
)
from .exceptions import (
    InvalidTokenError,
    ExpiredTokenError,
    MissingTokenError,
    InvalidCredentialsError,
    AccountExistsError,
    AccountNotFoundError,
    InvalidPasswordInputError,
    InsufficientPermissionsError,
)
from .passwords import PasswordManager
from .tokens import TokenManager
from .sessions import FileSessionStorage, MemorySessionStorage, SessionManager
from .repository import AccountRepository, PrivilegeResolver
from .service import AuthService

__all__ = [
    # Interfaces
    "IAuthService",
    "IAccountRepository",
    "ISessionStorage",
    # Services
    "AuthService",
    "PasswordManager",
    "TokenManager",
    "SessionManager",
    "FileSessionStorage",
    "MemorySessionStorage",
    "AccountRepository",
    "PrivilegeResolver",
    # Models
    "Account",
    "AccountRecord",
    "AuthResult",
    "LoginCredentials",
    "PasswordStrength",
    "PasswordValidationResult",
    "Profile",
    "RegistrationData",
    "SessionInfo",
    "SessionState",
    "SessionStatus",
    "StoredSession",
    "TokenClaims",
    "TokenPair",
    "TokenType",
    "TokenVerification",
    # Exceptions
    "InvalidTokenError",
    "ExpiredTokenError",
    "MissingTokenError",
    "InvalidCredentialsError",
    "AccountExistsError",
    "AccountNotFoundError",
    "InvalidPasswordInputError",
    "InsufficientPermissionsError",
]
