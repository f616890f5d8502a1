"""
Base repository class for database access.

Provides a common abstraction layer for all repositories, encapsulating
statement-executor access and the table allow-list used by the query
builder.
"""

from contextlib import contextmanager
from typing import Any, ClassVar, Generic, Iterator, Optional, TypeVar

from .database import IStatementExecutor, QueryResult
from .query_builder import QueryBuilder, SchemaAllowList


T = TypeVar("T")
R = TypeVar("R", bound="BaseRepository")


class BaseRepository(Generic[T]):
    """
    Base class for all repositories.

    Provides common functionality for database operations:
    - Statement executor access via self._db (a ConnectionManager or an
      open Transaction)
    - self._table(name) to start an allow-listed query builder
    - transaction() to run several repository calls atomically

    Subclasses declare ``table_schema`` (table -> allowed columns) and
    implement domain-specific methods, mapping rows to Pydantic models
    internally.

    Example:
        class AccountRepository(BaseRepository[Account]):
            table_schema = {"accounts": {"id", "email"}}

            def get_by_id(self, account_id: str) -> Optional[Account]:
                result = self._table("accounts").equals("id", account_id).limit(1).select()
                if not result.ok or not result.data:
                    return None
                return Account(**result.data[0])
    """

    table_schema: ClassVar[Optional[SchemaAllowList]] = None

    def __init__(self, db: IStatementExecutor) -> None:
        """
        Initialize the repository with a statement executor.

        Args:
            db: ConnectionManager or Transaction used for every statement.
        """
        self._db = db

    def _table(self, name: str) -> QueryBuilder:
        return QueryBuilder.from_table(self._db, name, schema=self.table_schema)

    @staticmethod
    def _rows(result: QueryResult) -> list[dict[str, Any]]:
        """Rows of a successful result; the DatabaseError is raised otherwise."""
        if not result.ok:
            raise result.error
        return result.data or []

    def bind(self: R, db: IStatementExecutor) -> R:
        """Same repository type, executing through ``db``."""
        return type(self)(db)

    @contextmanager
    def transaction(self: R) -> Iterator[R]:
        """
        Yield a copy of this repository bound to one open transaction.

        Commits when the block exits cleanly, rolls back otherwise.
        """
        with self._db.transaction() as tx:
            yield self.bind(tx)
