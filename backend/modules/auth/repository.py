"""
Account repository for database access.

Encapsulates all queries and data mapping for auth-related tables:
- accounts
- profiles

Privilege lookups go through PrivilegeResolver, which prefers the
is_admin_user() database function and falls back to profiles.role.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from psycopg2 import errorcodes

from shared.database import IStatementExecutor
from shared.exceptions import StatementError
from shared.query_builder import QueryBuilder
from shared.repository import BaseRepository

from .models import AccountRecord, Profile

logger = logging.getLogger(__name__)

ACCOUNT_COLUMNS = frozenset({
    "id",
    "email",
    "password_hash",
    "email_confirmed",
    "created_at",
    "updated_at",
    "last_sign_in_at",
})

PROFILE_COLUMNS = frozenset({
    "user_id",
    "full_name",
    "job_position",
    "department",
    "phone",
    "avatar_url",
    "role",
    "created_at",
    "updated_at",
})

AUTH_SCHEMA = {"accounts": ACCOUNT_COLUMNS, "profiles": PROFILE_COLUMNS}

ADMIN_ROLES = ("admin", "super_admin")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class PrivilegeResolver:
    """
    Decides whether an account holds the administrator privilege.

    Both lookups treat roles admin and super_admin as privileged.
    """

    def __init__(self, db: IStatementExecutor):
        self._db = db

    def is_admin(self, account_id: str) -> bool:
        result = self._db.execute(
            "SELECT is_admin_user(%s::uuid) AS is_admin", (account_id,)
        )
        if result.ok:
            return bool(result.data and result.data[0].get("is_admin"))

        error = result.error
        if isinstance(error, StatementError) and error.pgcode == errorcodes.UNDEFINED_FUNCTION:
            logger.warning("is_admin_user() is not installed, falling back to profiles.role")
            return self._has_admin_role(account_id)

        logger.warning(f"Privilege lookup failed for account {account_id}: {error.message}")
        return False

    def _has_admin_role(self, account_id: str) -> bool:
        result = (
            QueryBuilder.from_table(self._db, "profiles", schema=AUTH_SCHEMA)
            .equals("user_id", account_id)
            .in_("role", ADMIN_ROLES)
            .limit(1)
            .select("user_id")
        )
        if not result.ok:
            logger.warning(
                f"Profile role lookup failed for account {account_id}: {result.error.message}"
            )
            return False
        return bool(result.data)


class AccountRepository(BaseRepository[AccountRecord]):
    """
    Repository for account and profile data access.

    All methods return Pydantic models mapped from database rows and raise
    the data layer's DatabaseError when a statement fails.

    Note: This repository does NOT hash or verify passwords.
    The service layer is responsible for credentials.
    """

    table_schema = AUTH_SCHEMA

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def find_by_email(self, email: str) -> Optional[AccountRecord]:
        rows = self._rows(
            self._table("accounts").equals("email", normalize_email(email)).limit(1).select()
        )
        return self._map_to_account(rows[0]) if rows else None

    def find_by_id(self, account_id: str) -> Optional[AccountRecord]:
        rows = self._rows(
            self._table("accounts").equals("id", account_id).limit(1).select()
        )
        return self._map_to_account(rows[0]) if rows else None

    def create_account(self, email: str, password_hash: str) -> AccountRecord:
        """
        Insert a new account row.

        Raises:
            StatementError: With pgcode unique_violation when the email is taken.
        """
        rows = self._rows(
            self._table("accounts").insert(
                {"email": normalize_email(email), "password_hash": password_hash}
            )
        )
        return self._map_to_account(rows[0])

    def update_last_sign_in(self, account_id: str) -> None:
        now = datetime.now(timezone.utc)
        self._rows(
            self._table("accounts")
            .equals("id", account_id)
            .update({"last_sign_in_at": now, "updated_at": now})
        )

    def update_password_hash(self, account_id: str, password_hash: str) -> None:
        self._rows(
            self._table("accounts")
            .equals("id", account_id)
            .update({"password_hash": password_hash, "updated_at": datetime.now(timezone.utc)})
        )

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    def create_profile(self, account_id: str, fields: dict[str, Any]) -> Profile:
        rows = self._rows(self._table("profiles").insert({"user_id": account_id, **fields}))
        return self._map_to_profile(rows[0])

    def get_profile(self, account_id: str) -> Optional[Profile]:
        rows = self._rows(
            self._table("profiles").equals("user_id", account_id).limit(1).select()
        )
        return self._map_to_profile(rows[0]) if rows else None

    # -------------------------------------------------------------------------
    # Privilege
    # -------------------------------------------------------------------------

    def is_admin(self, account_id: str) -> bool:
        return PrivilegeResolver(self._db).is_admin(account_id)

    # -------------------------------------------------------------------------
    # Mapping helpers
    # -------------------------------------------------------------------------

    def _map_to_account(self, data: dict[str, Any]) -> AccountRecord:
        return AccountRecord(
            id=str(data["id"]),
            email=data["email"],
            password_hash=data["password_hash"],
            email_confirmed=bool(data.get("email_confirmed")),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            last_sign_in_at=data.get("last_sign_in_at"),
        )

    def _map_to_profile(self, data: dict[str, Any]) -> Profile:
        return Profile(**{**data, "user_id": str(data["user_id"]), "role": data.get("role") or "user"})
