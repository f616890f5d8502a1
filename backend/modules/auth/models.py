"""
Authentication module data models.

These models define the data structures used by the auth module
and exposed to other modules through the interface.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


# -----------------------------------------------------------------------------
# Stored identity
# -----------------------------------------------------------------------------


class Account(BaseModel):
    """
    Public snapshot of an account row.

    Safe to return to callers: the password hash lives on AccountRecord only.
    """

    id: str = Field(..., description="Account ID (UUID)")
    email: str = Field(..., description="Lower-cased email address")
    email_confirmed: bool = Field(default=False, description="Whether the email was confirmed")
    created_at: Optional[datetime] = Field(None, description="Account creation time")
    updated_at: Optional[datetime] = Field(None, description="Last update time")
    last_sign_in_at: Optional[datetime] = Field(None, description="Last successful login")

    model_config = {"extra": "ignore"}


class AccountRecord(Account):
    """Account row including its credential hash. Never leaves the module."""

    password_hash: str = Field(..., description="bcrypt hash")

    def to_account(self) -> Account:
        return Account(**self.model_dump(exclude={"password_hash"}))


class Profile(BaseModel):
    """Optional 1:1 extension of an account."""

    user_id: str = Field(..., description="Owning account ID")
    full_name: Optional[str] = Field(None, description="Display name")
    job_position: Optional[str] = Field(None, description="Job position")
    department: Optional[str] = Field(None, description="Department")
    phone: Optional[str] = Field(None, description="Phone number")
    avatar_url: Optional[str] = Field(None, description="Avatar URL")
    role: str = Field(default="user", description="Role name (admin, super_admin, user, ...)")
    created_at: Optional[datetime] = Field(None, description="Profile creation time")
    updated_at: Optional[datetime] = Field(None, description="Last update time")

    model_config = {"extra": "ignore"}


PROFILE_FIELDS = ("full_name", "job_position", "department", "phone", "avatar_url")


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------


class RegistrationData(BaseModel):
    """Input for AuthService.register."""

    email: str = Field(..., description="Email address")
    password: str = Field(..., description="Plaintext password")
    full_name: Optional[str] = Field(None, description="Display name")
    job_position: Optional[str] = Field(None, description="Job position")
    department: Optional[str] = Field(None, description="Department")
    phone: Optional[str] = Field(None, description="Phone number")
    avatar_url: Optional[str] = Field(None, description="Avatar URL")

    def profile_fields(self) -> dict[str, Any]:
        """Supplied profile values; empty when no profile should be created."""
        return {
            name: getattr(self, name)
            for name in PROFILE_FIELDS
            if getattr(self, name) not in (None, "")
        }


class LoginCredentials(BaseModel):
    """Input for AuthService.login."""

    email: str = Field(..., description="Email address")
    password: str = Field(..., description="Plaintext password")


# -----------------------------------------------------------------------------
# Tokens
# -----------------------------------------------------------------------------


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    PASSWORD_RESET = "password_reset"


class TokenClaims(BaseModel):
    """
    Decoded token payload.

    Access and refresh tokens of one pair share ``sid``; every token gets
    its own ``jti``.
    """

    sub: str = Field(..., description="Subject (account ID)")
    email: str = Field(..., description="Account email")
    is_admin: bool = Field(default=False, description="Privilege flag at issue time")
    sid: Optional[str] = Field(None, description="Session correlation id")
    type: TokenType = Field(..., description="Token purpose")
    jti: str = Field(..., description="Unique token id")
    iat: int = Field(..., description="Issued at timestamp")
    exp: int = Field(..., description="Expiration timestamp")
    iss: str = Field(..., description="Issuer")
    aud: str = Field(..., description="Audience")


class TokenPair(BaseModel):
    """Access and refresh token issued together."""

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    token_type: str = "bearer"


class TokenVerification(BaseModel):
    """
    Outcome of TokenManager.verify.

    ``is_expired`` is only set for tokens whose signature and claims are
    otherwise valid; forged or malformed tokens report False.
    """

    is_valid: bool
    claims: Optional[TokenClaims] = None
    error: Optional[str] = None
    is_expired: bool = False


# -----------------------------------------------------------------------------
# Passwords
# -----------------------------------------------------------------------------


class PasswordStrength(str, Enum):
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"


class PasswordValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    strength: PasswordStrength = PasswordStrength.WEAK
    score: int = Field(default=0, ge=0, le=6)


# -----------------------------------------------------------------------------
# Service results and sessions
# -----------------------------------------------------------------------------


class AuthResult(BaseModel):
    """Outcome of an auth flow. ``error`` is safe to show to end users."""

    success: bool
    account: Optional[Account] = None
    profile: Optional[Profile] = None
    tokens: Optional[TokenPair] = None
    is_admin: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def failure(cls, error: str, error_code: Optional[str] = None) -> "AuthResult":
        return cls(success=False, error=error, error_code=error_code)


class SessionInfo(BaseModel):
    """What a verified access token says about its session."""

    account_id: str
    email: str
    is_admin: bool = False
    session_id: Optional[str] = None
    expires_at: datetime


class StoredSession(BaseModel):
    """The client-side persisted session blob."""

    account: Account
    profile: Optional[Profile] = None
    tokens: TokenPair
    is_admin: bool = False
    last_refresh: Optional[datetime] = None


class SessionState(BaseModel):
    """Read model for the current client session."""

    is_authenticated: bool = False
    account: Optional[Account] = None
    profile: Optional[Profile] = None
    is_admin: bool = False
    tokens: Optional[TokenPair] = None

    @classmethod
    def from_session(cls, session: StoredSession) -> "SessionState":
        return cls(
            is_authenticated=True,
            account=session.account,
            profile=session.profile,
            is_admin=session.is_admin,
            tokens=session.tokens,
        )


class SessionStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
