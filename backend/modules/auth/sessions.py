"""
Client-side session cache.

Persists the signed-in session as one JSON blob and renews it shortly
before the access token expires:

    UNAUTHENTICATED --save--> AUTHENTICATED --refresh--> REFRESHING
    REFRESHING --ok--> AUTHENTICATED
    REFRESHING --failure--> UNAUTHENTICATED
"""

import logging
import os
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from shared.config import Settings

from .interfaces import IAuthService, ISessionStorage
from .models import (
    Account,
    AuthResult,
    Profile,
    SessionState,
    SessionStatus,
    StoredSession,
    TokenType,
)
from .tokens import TokenManager

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_THRESHOLD = timedelta(minutes=5)


class FileSessionStorage:
    """Session blob in a local file, replaced atomically on every write."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def read(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, blob: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=str(self.path.parent), delete=False, encoding="utf-8"
        ) as tf:
            tf.write(blob)
            temp_path = Path(tf.name)
        try:
            os.replace(temp_path, self.path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


class MemorySessionStorage:
    """Session blob held in process memory."""

    def __init__(self, blob: Optional[str] = None):
        self._blob = blob

    def read(self) -> Optional[str]:
        return self._blob

    def write(self, blob: str) -> None:
        self._blob = blob

    def delete(self) -> None:
        self._blob = None


class SessionManager:
    """
    Persists, validates and renews the client session.

    get_current_session() is the single read path: it loads the stored
    session, refreshes it when the access token is close to expiry and
    returns a SessionState.
    """

    def __init__(
        self,
        storage: ISessionStorage,
        tokens: TokenManager,
        auth: Optional[IAuthService] = None,
        refresh_threshold: timedelta = DEFAULT_REFRESH_THRESHOLD,
    ):
        self._storage = storage
        self._tokens = tokens
        self._auth = auth
        self.refresh_threshold = refresh_threshold
        self.status = SessionStatus.UNAUTHENTICATED

    @classmethod
    def from_settings(
        cls, settings: Settings, tokens: TokenManager, auth: Optional[IAuthService] = None
    ) -> "SessionManager":
        return cls(
            FileSessionStorage(settings.session_file),
            tokens,
            auth=auth,
            refresh_threshold=timedelta(seconds=settings.session_refresh_threshold_seconds),
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save(self, session: StoredSession) -> StoredSession:
        session = session.model_copy(update={"last_refresh": self._tokens.now()})
        self._storage.write(session.model_dump_json())
        self.status = SessionStatus.AUTHENTICATED
        logger.debug(f"Session saved for account {session.account.id}")
        return session

    def start(self, result: AuthResult) -> Optional[StoredSession]:
        """Persist the session from a successful login or registration."""
        if not result.success or result.account is None or result.tokens is None:
            return None
        return self.save(
            StoredSession(
                account=result.account,
                profile=result.profile,
                tokens=result.tokens,
                is_admin=result.is_admin,
            )
        )

    def load(self) -> Optional[StoredSession]:
        """
        Read the stored session.

        Corrupt blobs, structurally invalid sessions and sessions whose
        access and refresh tokens have both expired are cleared.
        """
        blob = self._storage.read()
        if not blob:
            self.status = SessionStatus.UNAUTHENTICATED
            return None

        try:
            session = StoredSession.model_validate_json(blob)
        except PydanticValidationError:
            logger.warning("Stored session is corrupt, clearing")
            self.clear()
            return None

        if not self.validate(session):
            logger.warning("Stored session failed validation, clearing")
            self.clear()
            return None

        if self._tokens.is_expired(session.tokens.access_token) and self._tokens.is_expired(
            session.tokens.refresh_token
        ):
            logger.info("Stored session expired, clearing")
            self.clear()
            return None

        if self.status is SessionStatus.UNAUTHENTICATED:
            self.status = SessionStatus.AUTHENTICATED
        return session

    def clear(self) -> None:
        self._storage.delete()
        self.status = SessionStatus.UNAUTHENTICATED

    # -------------------------------------------------------------------------
    # Validation and renewal
    # -------------------------------------------------------------------------

    def validate(self, session: StoredSession) -> bool:
        """Account identity and both tokens present; access token genuine (expiry allowed)."""
        if not session.account.id or not session.account.email:
            return False
        if not session.tokens.access_token or not session.tokens.refresh_token:
            return False
        verification = self._tokens.verify(session.tokens.access_token, TokenType.ACCESS)
        return verification.is_valid or verification.is_expired

    def needs_refresh(self, session: StoredSession) -> bool:
        verification = self._tokens.verify(session.tokens.access_token, TokenType.ACCESS)
        if not verification.is_valid:
            return True
        remaining = verification.claims.exp - self._tokens.now().timestamp()
        return remaining <= self.refresh_threshold.total_seconds()

    def refresh(self, session: StoredSession) -> Optional[StoredSession]:
        """Renew the tokens through the auth service; clears the session on failure."""
        if self._auth is None:
            logger.warning("Session refresh requested without an auth service")
            self.clear()
            return None

        self.status = SessionStatus.REFRESHING
        try:
            result = self._auth.refresh_token(session.tokens.refresh_token)
        except Exception as e:
            logger.error(f"Session refresh raised, clearing: {e}")
            self.clear()
            raise

        if not result.success:
            logger.info(f"Session refresh failed: {result.error}")
            self.clear()
            return None

        logger.info(f"Session refreshed for account {result.account.id}")
        return self.save(
            StoredSession(
                account=result.account,
                profile=result.profile if result.profile is not None else session.profile,
                tokens=result.tokens,
                is_admin=result.is_admin,
            )
        )

    def get_current_session(self) -> SessionState:
        session = self.load()
        if session is None:
            return SessionState()
        if self.needs_refresh(session):
            session = self.refresh(session)
            if session is None:
                return SessionState()
        return SessionState.from_session(session)

    # -------------------------------------------------------------------------
    # Convenience accessors
    # -------------------------------------------------------------------------

    def update_account(self, account: Account, profile: Optional[Profile] = None) -> bool:
        """Replace the cached account/profile without touching the tokens."""
        session = self.load()
        if session is None:
            return False
        update = {"account": account}
        if profile is not None:
            update["profile"] = profile
        self.save(session.model_copy(update=update))
        return True

    def get_access_token(self) -> Optional[str]:
        state = self.get_current_session()
        return state.tokens.access_token if state.is_authenticated else None

    def get_current_account(self) -> Optional[Account]:
        return self.get_current_session().account

    def is_current_account_admin(self) -> bool:
        return self.get_current_session().is_admin

    def get_expiration(self):
        """Access token expiry of the stored session, without refreshing."""
        session = self.load()
        return session.tokens.access_expires_at if session else None
