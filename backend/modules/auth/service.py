"""
Authentication service implementation.

Registers accounts, authenticates credentials and manages the
access/refresh token lifecycle on top of the account repository.

Flows return AuthResult with a user-safe error; the distinct failure
kinds are only visible in the logs.
"""

import logging
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from psycopg2 import errorcodes

from shared.exceptions import DatabaseError, StatementError
from shared.models import AuthenticatedUser

from .exceptions import (
    AccountExistsError,
    AccountNotFoundError,
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidTokenError,
    MissingTokenError,
)
from .interfaces import IAccountRepository, IAuthService
from .models import (
    AuthResult,
    LoginCredentials,
    RegistrationData,
    SessionInfo,
    TokenType,
)
from .passwords import PasswordManager
from .repository import normalize_email
from .tokens import TokenManager

logger = logging.getLogger(__name__)

INVALID_SESSION_MESSAGE = "Session is invalid, please sign in again"
UNAVAILABLE_MESSAGE = "Service temporarily unavailable, please try again later"
INVALID_RESET_MESSAGE = "Password reset link is invalid or has expired"


class AuthService(IAuthService):
    """
    Implementation of the authentication service.

    Stateless: no session is stored server-side. Everything a request
    needs is carried by the signed tokens.
    """

    def __init__(
        self,
        accounts: IAccountRepository,
        passwords: PasswordManager,
        tokens: TokenManager,
    ):
        self._accounts = accounts
        self._passwords = passwords
        self._tokens = tokens

    # -------------------------------------------------------------------------
    # Registration and login
    # -------------------------------------------------------------------------

    def register(self, data: RegistrationData) -> AuthResult:
        """
        Create an account (plus profile when profile fields are given).

        The account and profile rows are written in one transaction, so a
        failed profile insert leaves no orphan account behind.
        """
        try:
            email = validate_email(data.email.strip(), check_deliverability=False).normalized
        except EmailNotValidError:
            return AuthResult.failure("Invalid email format", "INVALID_EMAIL")
        email = normalize_email(email)

        strength = self._passwords.validate_strength(data.password)
        if not strength.is_valid:
            return AuthResult.failure(
                "Password does not meet requirements: " + "; ".join(strength.errors),
                "WEAK_PASSWORD",
            )

        try:
            if self._accounts.find_by_email(email) is not None:
                return self._duplicate(email)

            password_hash = self._passwords.hash(data.password)
            profile = None
            with self._accounts.transaction() as tx:
                record = tx.create_account(email, password_hash)
                fields = data.profile_fields()
                if fields:
                    profile = tx.create_profile(record.id, fields)

            is_admin = self._accounts.is_admin(record.id)
        except StatementError as e:
            if e.pgcode == errorcodes.UNIQUE_VIOLATION:
                return self._duplicate(email)
            logger.error(f"Registration failed: {e.message}")
            return AuthResult.failure(UNAVAILABLE_MESSAGE, e.code)
        except DatabaseError as e:
            logger.error(f"Registration failed: {e.message}")
            return AuthResult.failure(UNAVAILABLE_MESSAGE, e.code)

        tokens = self._tokens.generate_token_pair(record.id, record.email, is_admin)
        logger.info(f"Account registered: {record.id}")
        return AuthResult(
            success=True,
            account=record.to_account(),
            profile=profile,
            tokens=tokens,
            is_admin=is_admin,
        )

    def _duplicate(self, email: str) -> AuthResult:
        error = AccountExistsError(email)
        logger.warning("Registration rejected: email already registered")
        return AuthResult.failure(error.message, error.code)

    def login(self, credentials: LoginCredentials) -> AuthResult:
        """
        Authenticate with email and password.

        A missing account still costs one bcrypt verification against a
        dummy hash, and both failure paths return the same error.
        """
        invalid = InvalidCredentialsError()
        if not credentials.email or not credentials.password:
            return AuthResult.failure(invalid.message, invalid.code)

        try:
            record = self._accounts.find_by_email(credentials.email)
            if record is None:
                self._passwords.verify(credentials.password, self._passwords.dummy_hash)
                logger.warning("Failed login attempt for unknown email")
                return AuthResult.failure(invalid.message, invalid.code)

            if not self._passwords.verify(credentials.password, record.password_hash):
                logger.warning(f"Failed login attempt for account {record.id}")
                return AuthResult.failure(invalid.message, invalid.code)

            self._accounts.update_last_sign_in(record.id)
            if self._passwords.needs_rehash(record.password_hash):
                self._rehash(record.id, credentials.password)

            profile = self._accounts.get_profile(record.id)
            is_admin = self._accounts.is_admin(record.id)
        except DatabaseError as e:
            logger.error(f"Login failed: {e.message}")
            return AuthResult.failure(UNAVAILABLE_MESSAGE, e.code)

        tokens = self._tokens.generate_token_pair(record.id, record.email, is_admin)
        logger.info(f"Account signed in: {record.id}")
        return AuthResult(
            success=True,
            account=record.to_account(),
            profile=profile,
            tokens=tokens,
            is_admin=is_admin,
        )

    def _rehash(self, account_id: str, password: str) -> None:
        try:
            self._accounts.update_password_hash(account_id, self._passwords.hash(password))
            logger.info(f"Password hash upgraded for account {account_id}")
        except DatabaseError as e:
            logger.warning(f"Could not upgrade password hash for {account_id}: {e.message}")

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    def refresh_token(self, refresh_token: str) -> AuthResult:
        """
        Issue a new token pair from a refresh token.

        Account, profile and privilege are re-read so the new tokens
        reflect the current state of the store; the session id is kept.
        """
        verification = self._tokens.verify(refresh_token, TokenType.REFRESH)
        if not verification.is_valid:
            logger.info(f"Refresh rejected: {verification.error}")
            return AuthResult.failure(INVALID_SESSION_MESSAGE, "INVALID_SESSION")

        try:
            record = self._accounts.find_by_id(verification.claims.sub)
            if record is None:
                logger.warning(f"Refresh for missing account {verification.claims.sub}")
                return AuthResult.failure(INVALID_SESSION_MESSAGE, "INVALID_SESSION")
            profile = self._accounts.get_profile(record.id)
            is_admin = self._accounts.is_admin(record.id)
        except DatabaseError as e:
            logger.error(f"Token refresh failed: {e.message}")
            return AuthResult.failure(UNAVAILABLE_MESSAGE, e.code)

        tokens = self._tokens.refresh(refresh_token, email=record.email, is_admin=is_admin)
        if tokens is None:
            return AuthResult.failure(INVALID_SESSION_MESSAGE, "INVALID_SESSION")

        return AuthResult(
            success=True,
            account=record.to_account(),
            profile=profile,
            tokens=tokens,
            is_admin=is_admin,
        )

    def verify_session(self, access_token: str) -> Optional[SessionInfo]:
        verification = self._tokens.verify(access_token, TokenType.ACCESS)
        if not verification.is_valid:
            return None
        claims = verification.claims
        return SessionInfo(
            account_id=claims.sub,
            email=claims.email,
            is_admin=claims.is_admin,
            session_id=claims.sid,
            expires_at=claims.exp,
        )

    def validate_token(self, token: Optional[str]) -> AuthenticatedUser:
        if not token:
            raise MissingTokenError()

        verification = self._tokens.verify(token, TokenType.ACCESS)
        if verification.is_expired:
            raise ExpiredTokenError()
        if not verification.is_valid:
            raise InvalidTokenError(verification.error or "Invalid authentication token")

        claims = verification.claims
        return AuthenticatedUser(
            id=claims.sub,
            email=claims.email,
            is_admin=claims.is_admin,
            session_id=claims.sid,
            issued_at=claims.iat,
            expires_at=claims.exp,
        )

    # -------------------------------------------------------------------------
    # Passwords
    # -------------------------------------------------------------------------

    def change_password(
        self, account_id: str, current_password: str, new_password: str
    ) -> AuthResult:
        try:
            record = self._accounts.find_by_id(account_id)
            if record is None:
                error = AccountNotFoundError(account_id)
                logger.warning(f"Password change for missing account {account_id}")
                return AuthResult.failure(error.message, error.code)

            if not self._passwords.verify(current_password, record.password_hash):
                logger.warning(f"Password change with wrong current password: {account_id}")
                return AuthResult.failure("Current password is incorrect", "INVALID_CREDENTIALS")

            rejected = self._check_new_password(new_password, current_password)
            if rejected is not None:
                return rejected

            self._accounts.update_password_hash(account_id, self._passwords.hash(new_password))
        except DatabaseError as e:
            logger.error(f"Password change failed: {e.message}")
            return AuthResult.failure(UNAVAILABLE_MESSAGE, e.code)

        logger.info(f"Password changed for account {account_id}")
        return AuthResult(success=True, account=record.to_account())

    def _check_new_password(
        self, new_password: str, current_password: Optional[str] = None
    ) -> Optional[AuthResult]:
        if current_password is not None and new_password == current_password:
            return AuthResult.failure(
                "New password must be different from the current password", "WEAK_PASSWORD"
            )
        strength = self._passwords.validate_strength(new_password)
        if not strength.is_valid:
            return AuthResult.failure(
                "Password does not meet requirements: " + "; ".join(strength.errors),
                "WEAK_PASSWORD",
            )
        return None

    def request_password_reset(self, email: str) -> Optional[str]:
        """
        Issue a password reset token for a known account.

        Delivering the token (email) is the caller's job. Returns None for
        unknown emails; callers must not reveal which case happened.
        """
        try:
            record = self._accounts.find_by_email(email)
        except DatabaseError as e:
            logger.error(f"Password reset request failed: {e.message}")
            return None
        if record is None:
            logger.info("Password reset requested for unknown email")
            return None
        logger.info(f"Password reset token issued for account {record.id}")
        return self._tokens.generate_password_reset_token(record.id, record.email)

    def reset_password(self, token: str, new_password: str) -> AuthResult:
        verification = self._tokens.verify_password_reset_token(token)
        if not verification.is_valid:
            return AuthResult.failure(INVALID_RESET_MESSAGE, "INVALID_RESET_TOKEN")

        rejected = self._check_new_password(new_password)
        if rejected is not None:
            return rejected

        claims = verification.claims
        try:
            record = self._accounts.find_by_id(claims.sub)
            if record is None or record.email != claims.email:
                return AuthResult.failure(INVALID_RESET_MESSAGE, "INVALID_RESET_TOKEN")
            self._accounts.update_password_hash(record.id, self._passwords.hash(new_password))
        except DatabaseError as e:
            logger.error(f"Password reset failed: {e.message}")
            return AuthResult.failure(UNAVAILABLE_MESSAGE, e.code)

        logger.info(f"Password reset for account {record.id}")
        return AuthResult(success=True, account=record.to_account())
