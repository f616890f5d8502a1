"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from psycopg2 import errorcodes, sql

from shared.config import Settings, get_settings
from shared.database import QueryResult
from shared.exceptions import StatementError
from shared.query_builder import QueryBuilder
from modules.auth.models import AccountRecord, Profile
from modules.auth.passwords import PasswordManager
from modules.auth.repository import normalize_email
from modules.auth.service import AuthService
from modules.auth.tokens import TokenManager


# Test JWT secret (only for testing)
TEST_JWT_SECRET = "test-secret-key-for-testing-only-0123456789"

START_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock for token expiry tests."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingExecutor:
    """Statement executor that records calls and replays queued results."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, Any]] = []
        self.results: list[QueryResult] = []

    def execute(self, statement, params=None) -> QueryResult:
        self.calls.append((statement, params))
        if self.results:
            return self.results.pop(0)
        return QueryResult(data=[])

    def table(self, name: str, schema=None) -> QueryBuilder:
        return QueryBuilder.from_table(self, name, schema=schema)

    @contextmanager
    def transaction(self):
        yield self


class InMemoryAccountRepository:
    """Account repository kept in dicts; transactions restore a snapshot on error."""

    def __init__(self) -> None:
        self.accounts: dict[str, AccountRecord] = {}
        self.profiles: dict[str, Profile] = {}
        self.admins: set[str] = set()
        self.fail_profile_insert = False

    def find_by_email(self, email: str) -> Optional[AccountRecord]:
        email = normalize_email(email)
        return next((a for a in self.accounts.values() if a.email == email), None)

    def find_by_id(self, account_id: str) -> Optional[AccountRecord]:
        return self.accounts.get(account_id)

    def create_account(self, email: str, password_hash: str) -> AccountRecord:
        if any(a.email == normalize_email(email) for a in self.accounts.values()):
            raise StatementError("Duplicate key violation", pgcode=errorcodes.UNIQUE_VIOLATION)
        now = datetime.now(timezone.utc)
        record = AccountRecord(
            id=str(uuid.uuid4()),
            email=normalize_email(email),
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )
        self.accounts[record.id] = record
        return record

    def create_profile(self, account_id: str, fields: dict[str, Any]) -> Profile:
        if self.fail_profile_insert:
            raise StatementError("Not null violation", pgcode=errorcodes.NOT_NULL_VIOLATION)
        profile = Profile(user_id=account_id, **fields)
        self.profiles[account_id] = profile
        return profile

    def get_profile(self, account_id: str) -> Optional[Profile]:
        return self.profiles.get(account_id)

    def update_last_sign_in(self, account_id: str) -> None:
        record = self.accounts[account_id]
        self.accounts[account_id] = record.model_copy(
            update={"last_sign_in_at": datetime.now(timezone.utc)}
        )

    def update_password_hash(self, account_id: str, password_hash: str) -> None:
        record = self.accounts[account_id]
        self.accounts[account_id] = record.model_copy(update={"password_hash": password_hash})

    def is_admin(self, account_id: str) -> bool:
        return account_id in self.admins

    @contextmanager
    def transaction(self):
        snapshot = (dict(self.accounts), dict(self.profiles))
        try:
            yield self
        except BaseException:
            self.accounts, self.profiles = snapshot
            raise


def render(composable) -> str:
    """Flatten a psycopg2 Composable to text without a connection."""
    if isinstance(composable, str):
        return composable
    if isinstance(composable, sql.Composed):
        return "".join(render(part) for part in composable.seq)
    if isinstance(composable, sql.SQL):
        return composable.string
    if isinstance(composable, sql.Identifier):
        return ".".join('"' + s.replace('"', '""') + '"' for s in composable.strings)
    if isinstance(composable, sql.Placeholder):
        return "%s" if composable.name is None else f"%({composable.name})s"
    raise TypeError(f"Cannot render {composable!r}")


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Reset the cached settings before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def render_sql():
    """Render a statement built with psycopg2.sql to plain text."""
    return render


@pytest.fixture
def jwt_secret() -> str:
    return TEST_JWT_SECRET


@pytest.fixture
def settings() -> Settings:
    """Settings that pass validation."""
    return Settings(
        db_host="localhost",
        db_name="hemera_test",
        db_user="hemera",
        db_password="secret",
        jwt_secret=TEST_JWT_SECRET,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def password_manager() -> PasswordManager:
    """Password manager with the minimum bcrypt cost to keep tests fast."""
    return PasswordManager(rounds=4)


@pytest.fixture
def token_manager(clock: FakeClock) -> TokenManager:
    return TokenManager(TEST_JWT_SECRET, clock=clock)


@pytest.fixture
def accounts() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def auth_service(
    accounts: InMemoryAccountRepository,
    password_manager: PasswordManager,
    token_manager: TokenManager,
) -> AuthService:
    return AuthService(accounts=accounts, passwords=password_manager, tokens=token_manager)
