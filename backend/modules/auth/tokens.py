"""
JWT issuing and verification.

Tokens are HS256-signed with the configured secret and carry:
sub, email, is_admin, sid, type, jti, iat, exp, iss, aud.

Expiry is checked against the manager's own clock (after signature and
claim verification) so an expired-but-genuine token can be told apart
from a forged one.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from shared.config import Settings

from .models import TokenClaims, TokenPair, TokenType, TokenVerification

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "email", "type", "jti", "iat", "exp", "iss", "aud"]
SESSION_TYPES = (TokenType.ACCESS, TokenType.REFRESH)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def strip_bearer(token: str) -> str:
    if token[:7].lower() == "bearer ":
        return token[7:].strip()
    return token.strip()


class TokenManager:
    """Issues and verifies access, refresh and password-reset tokens."""

    def __init__(
        self,
        secret: str,
        *,
        issuer: str = "hemera-system",
        audience: str = "hemera-users",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        reset_ttl: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self.issuer = issuer
        self.audience = audience
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.reset_ttl = reset_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenManager":
        return cls(
            settings.jwt_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
            reset_ttl=timedelta(minutes=settings.password_reset_expire_minutes),
        )

    def now(self) -> datetime:
        return self._clock()

    # -------------------------------------------------------------------------
    # Issuing
    # -------------------------------------------------------------------------

    def _issue(
        self,
        token_type: TokenType,
        account_id: str,
        email: str,
        is_admin: bool,
        session_id: Optional[str],
        ttl: timedelta,
    ) -> tuple[str, datetime]:
        issued_at = self.now()
        expires_at = issued_at + ttl
        payload: dict[str, Any] = {
            "sub": account_id,
            "email": email,
            "is_admin": is_admin,
            "type": token_type.value,
            "jti": uuid.uuid4().hex,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self.issuer,
            "aud": self.audience,
        }
        if session_id:
            payload["sid"] = session_id
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        return token, datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

    def generate_token_pair(
        self,
        account_id: str,
        email: str,
        is_admin: bool = False,
        session_id: Optional[str] = None,
    ) -> TokenPair:
        """
        Issue an access/refresh pair sharing one session id.

        Args:
            account_id: Token subject
            email: Account email
            is_admin: Privilege flag to embed
            session_id: Reuse an existing session id (refresh); a new one is
                generated when omitted

        Returns:
            TokenPair with both tokens and their expiry times
        """
        sid = session_id or secrets.token_urlsafe(16)
        access_token, access_expires_at = self._issue(
            TokenType.ACCESS, account_id, email, is_admin, sid, self.access_ttl
        )
        refresh_token, refresh_expires_at = self._issue(
            TokenType.REFRESH, account_id, email, is_admin, sid, self.refresh_ttl
        )
        logger.debug(f"Issued token pair for account {account_id}")
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    def generate_password_reset_token(self, account_id: str, email: str) -> str:
        token, _ = self._issue(
            TokenType.PASSWORD_RESET, account_id, email, False, None, self.reset_ttl
        )
        return token

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------

    def verify(
        self, token: Optional[str], expected_type: Optional[TokenType] = None
    ) -> TokenVerification:
        """
        Verify signature, issuer, audience, required claims and expiry.

        A leading "Bearer " is stripped. With no expected_type, access and
        refresh tokens are accepted and special-purpose tokens rejected.
        """
        if not token:
            return TokenVerification(is_valid=False, error="Token is missing")

        try:
            payload = jwt.decode(
                strip_bearer(token),
                self._secret,
                algorithms=[ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
            claims = TokenClaims(**payload)
        except jwt.InvalidTokenError as e:
            logger.debug(f"Token rejected: {e}")
            return TokenVerification(is_valid=False, error="Invalid token")
        except PydanticValidationError:
            return TokenVerification(is_valid=False, error="Invalid token claims")

        allowed = SESSION_TYPES if expected_type is None else (expected_type,)
        if claims.type not in allowed:
            return TokenVerification(is_valid=False, error="Unexpected token type")
        if claims.type in SESSION_TYPES and not claims.sid:
            return TokenVerification(is_valid=False, error="Missing session id")

        if claims.exp <= int(self.now().timestamp()):
            return TokenVerification(
                is_valid=False, claims=claims, error="Token has expired", is_expired=True
            )

        return TokenVerification(is_valid=True, claims=claims)

    def verify_password_reset_token(self, token: Optional[str]) -> TokenVerification:
        return self.verify(token, TokenType.PASSWORD_RESET)

    def refresh(
        self,
        refresh_token: str,
        email: Optional[str] = None,
        is_admin: Optional[bool] = None,
    ) -> Optional[TokenPair]:
        """
        Exchange a valid refresh token for a new pair with the same sid.

        ``email``/``is_admin`` override the values carried by the old token
        so callers can embed freshly loaded account data.
        """
        verification = self.verify(refresh_token, TokenType.REFRESH)
        if not verification.is_valid:
            return None

        claims = verification.claims
        return self.generate_token_pair(
            claims.sub,
            email if email is not None else claims.email,
            is_admin=claims.is_admin if is_admin is None else is_admin,
            session_id=claims.sid,
        )

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def decode(self, token: str) -> Optional[dict[str, Any]]:
        """Read a token's payload WITHOUT verifying it. Inspection only."""
        try:
            return jwt.decode(strip_bearer(token), options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None

    def get_expiration(self, token: str) -> Optional[datetime]:
        payload = self.decode(token)
        if not payload or not isinstance(payload.get("exp"), (int, float)):
            return None
        return datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

    def is_expired(self, token: str) -> bool:
        """Expiry from the unverified payload; unreadable tokens count as expired."""
        expires_at = self.get_expiration(token)
        return expires_at is None or expires_at <= self.now()

    def extract_account_id(self, token: str) -> Optional[str]:
        """Subject of a valid access or refresh token."""
        verification = self.verify(token)
        return verification.claims.sub if verification.is_valid else None
