"""
Pooled PostgreSQL access.

The ConnectionManager owns a psycopg2 connection pool and is the only
place statements reach the driver. Every statement:

- runs with driver-bound parameters (never interpolated),
- carries a transaction-local statement timeout,
- carries the handle's acting user as a transaction-local setting, so
  row-level policies in the database can see who is acting.

Failures are returned as QueryResult.error instead of raised, using the
DatabaseError kinds from shared.exceptions.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Protocol, Sequence, Union, runtime_checkable

import psycopg2
from psycopg2 import errorcodes, sql
from psycopg2.extensions import QueryCanceledError
from psycopg2.extras import RealDictCursor
from psycopg2.pool import PoolError, ThreadedConnectionPool
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings
from .exceptions import (
    ConfigurationError,
    ConnectionFailedError,
    DatabaseError,
    PoolExhaustedError,
    QueryTimeoutError,
    StatementError,
)
from .query_monitor import QueryMonitor

logger = logging.getLogger(__name__)

Statement = Union[str, sql.Composable]
Params = Optional[Union[Sequence[Any], dict[str, Any]]]

# User-safe messages for SQLSTATE codes; the raw engine error is only logged
STATEMENT_ERROR_MESSAGES: dict[str, str] = {
    errorcodes.UNIQUE_VIOLATION: "Duplicate key violation",
    errorcodes.FOREIGN_KEY_VIOLATION: "Foreign key violation",
    errorcodes.NOT_NULL_VIOLATION: "Not null violation",
    errorcodes.CHECK_VIOLATION: "Check constraint violation",
    errorcodes.UNDEFINED_TABLE: "Table does not exist",
    errorcodes.UNDEFINED_COLUMN: "Column does not exist",
    errorcodes.UNDEFINED_FUNCTION: "Function does not exist",
    errorcodes.INVALID_TEXT_REPRESENTATION: "Invalid input value",
}

# SQLSTATE classes that mean the connection, not the statement, is at fault
_CONNECTION_ERROR_CLASSES = ("08", "53", "57P")


@dataclass
class QueryResult:
    """Uniform result of a statement: exactly one of data/error is set."""

    data: Optional[Any] = None
    error: Optional[DatabaseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@runtime_checkable
class IStatementExecutor(Protocol):
    """Anything that can run a parameterized statement."""

    def execute(self, statement: Statement, params: Params = None) -> QueryResult:
        ...


def translate_error(exc: Exception) -> DatabaseError:
    """
    Map a driver/pool exception onto the data-layer error kinds.

    Timeouts, pool exhaustion and connection trouble stay distinct so
    callers can pick a retry policy per kind.
    """
    if isinstance(exc, PoolError):
        if "exhausted" in str(exc):
            return PoolExhaustedError()
        return ConnectionFailedError(f"Connection pool unavailable: {exc}")

    if isinstance(exc, QueryCanceledError):
        return QueryTimeoutError()

    pgcode = getattr(exc, "pgcode", None)

    if isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError)):
        if pgcode is None or pgcode.startswith(_CONNECTION_ERROR_CLASSES):
            return ConnectionFailedError()

    return StatementError(
        STATEMENT_ERROR_MESSAGES.get(pgcode, "Database statement failed"),
        pgcode=pgcode,
    )


def _preview(statement: Statement) -> str:
    text = statement if isinstance(statement, str) else repr(statement)
    return text[:100] + ("..." if len(text) > 100 else "")


def _run_statement(conn, statement: Statement, params: Params) -> list[dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(statement, params)
        if cur.description is None:
            return []
        return [dict(row) for row in cur.fetchall()]


def _safe_rollback(conn) -> None:
    try:
        conn.rollback()
    except psycopg2.Error as exc:
        logger.warning(f"Rollback failed: {exc}")


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, DatabaseError) and exc.retryable


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception()
    logger.warning(
        f"{error.code} on statement, retry {retry_state.attempt_number} "
        f"in {retry_state.next_action.sleep:.2f}s"
    )


class Transaction:
    """
    A single pooled connection inside one open transaction.

    Obtained from ConnectionManager.transaction(). Any statement error
    marks the transaction failed and it is rolled back on exit.
    """

    def __init__(self, conn) -> None:
        self._conn = conn
        self.failed = False

    def execute(self, statement: Statement, params: Params = None) -> QueryResult:
        """Run a statement on the transaction's connection."""
        try:
            return QueryResult(data=_run_statement(self._conn, statement, params))
        except psycopg2.Error as exc:
            self.failed = True
            logger.error(f"Statement failed inside transaction ({exc.pgcode}): {exc}")
            return QueryResult(error=translate_error(exc))

    def table(self, name: str, schema=None):
        """Start a query builder bound to this transaction."""
        from .query_builder import QueryBuilder

        return QueryBuilder.from_table(self, name, schema=schema)


class ConnectionManager:
    """
    Pooled handle to the relational store.

    A handle carries one piece of mutable state: the acting user. Use
    for_user() to get a sibling handle per logical request instead of
    mutating a shared one.
    """

    def __init__(
        self,
        pool,
        *,
        statement_timeout: int = 30,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        acting_user_setting: str = "app.current_user_id",
        acting_user: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        monitor: Optional[QueryMonitor] = None,
    ) -> None:
        """
        Args:
            pool: psycopg2 connection pool (ThreadedConnectionPool or compatible)
            statement_timeout: Per-statement timeout in seconds
            retry_attempts: Retries after the first attempt for retryable errors
            retry_delay: Base backoff in seconds, doubled on every retry
            acting_user_setting: Custom GUC that receives the acting user id
            acting_user: Initial acting user for this handle
            sleep: Injected for tests
            monitor: Statement timing collector, shared by sibling handles
        """
        self._pool = pool
        self._statement_timeout = statement_timeout
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._acting_user_setting = acting_user_setting
        self._acting_user = acting_user
        self._sleep = sleep
        self._monitor = monitor if monitor is not None else QueryMonitor()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionManager":
        """
        Open the pool described by settings.

        Raises:
            ConfigurationError: If the database rejects the connection
                parameters or cannot be reached at startup.
        """
        try:
            pool = ThreadedConnectionPool(
                settings.db_pool_min,
                settings.db_pool_max,
                host=settings.db_host,
                port=settings.db_port,
                dbname=settings.db_name,
                user=settings.db_user,
                password=settings.db_password,
                sslmode=settings.db_sslmode,
                connect_timeout=settings.db_connect_timeout,
            )
        except psycopg2.OperationalError as exc:
            logger.error(f"Could not open database pool: {exc}")
            raise ConfigurationError(
                [f"Unable to connect to {settings.db_name} at {settings.db_host}:{settings.db_port}"]
            ) from exc

        logger.info(
            f"Database pool opened for {settings.db_name} at "
            f"{settings.db_host}:{settings.db_port} (max {settings.db_pool_max})"
        )
        return cls(
            pool,
            statement_timeout=settings.db_statement_timeout,
            retry_attempts=settings.db_retry_attempts,
            retry_delay=settings.db_retry_delay,
            acting_user_setting=settings.db_acting_user_setting,
            monitor=QueryMonitor(slow_threshold=settings.db_slow_query_ms / 1000),
        )

    # -------------------------------------------------------------------------
    # Acting user
    # -------------------------------------------------------------------------

    @property
    def acting_user(self) -> Optional[str]:
        return self._acting_user

    def set_acting_user(self, user_id: Optional[str]) -> None:
        """Attribute every following statement on this handle to user_id."""
        self._acting_user = user_id

    def for_user(self, user_id: Optional[str]) -> "ConnectionManager":
        """Sibling handle on the same pool with its own acting user."""
        return ConnectionManager(
            self._pool,
            statement_timeout=self._statement_timeout,
            retry_attempts=self._retry_attempts,
            retry_delay=self._retry_delay,
            acting_user_setting=self._acting_user_setting,
            acting_user=user_id,
            sleep=self._sleep,
            monitor=self._monitor,
        )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def execute(self, statement: Statement, params: Params = None) -> QueryResult:
        """
        Execute one parameterized statement in its own transaction.

        Retryable failures (pool exhausted, connection lost, timeout) are
        retried with exponential backoff. Once retries are exhausted the
        error is returned with retryable=True so the caller can decide.

        Returns:
            QueryResult with a list of row dicts, or the error.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._retry_attempts + 1),
            wait=wait_exponential(multiplier=self._retry_delay),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return QueryResult(data=retrying(self._run, statement, params))
        except DatabaseError as error:
            return QueryResult(error=error)

    def _run(self, statement: Statement, params: Params) -> list[dict[str, Any]]:
        conn = self._acquire()
        preview = _preview(statement)
        start = time.monotonic()
        try:
            self._prepare(conn)
            rows = _run_statement(conn, statement, params)
            conn.commit()
        except psycopg2.Error as exc:
            _safe_rollback(conn)
            elapsed = time.monotonic() - start
            self._monitor.record(preview, elapsed)
            logger.error(
                f"Database statement failed ({exc.pgcode}) after "
                f"{elapsed * 1000:.0f}ms: {exc} | {preview}"
            )
            raise translate_error(exc) from exc
        finally:
            self._release(conn)

        elapsed = time.monotonic() - start
        self._monitor.record(preview, elapsed)
        logger.debug(f"Statement executed in {elapsed * 1000:.0f}ms, {len(rows)} row(s): {preview}")
        return rows

    def _acquire(self):
        try:
            return self._pool.getconn()
        except PoolError as exc:
            raise translate_error(exc) from exc
        except psycopg2.OperationalError as exc:
            logger.error(f"Could not open database connection: {exc}")
            raise ConnectionFailedError() from exc

    def _release(self, conn) -> None:
        try:
            self._pool.putconn(conn, close=bool(conn.closed))
        except PoolError as exc:
            logger.warning(f"Could not return connection to pool: {exc}")

    def _prepare(self, conn) -> None:
        """Set the transaction-local timeout and acting user."""
        with conn.cursor() as cur:
            cur.execute(
                "SELECT set_config('statement_timeout', %s, true), set_config(%s, %s, true)",
                (
                    str(self._statement_timeout * 1000),
                    self._acting_user_setting,
                    self._acting_user or "",
                ),
            )

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Run several statements atomically on one connection.

        Usage:
            with connections.transaction() as tx:
                tx.table("accounts").insert({...})
                tx.table("profiles").insert({...})

        Commits on a clean exit; rolls back if the block raises or any
        statement inside it failed.

        Raises:
            DatabaseError: If the transaction itself cannot be opened or
                committed.
        """
        conn = self._acquire()
        tx = Transaction(conn)
        try:
            try:
                self._prepare(conn)
                yield tx
                if tx.failed:
                    logger.warning("Transaction rolled back after a failed statement")
                    conn.rollback()
                else:
                    conn.commit()
            except psycopg2.Error as exc:
                _safe_rollback(conn)
                logger.error(f"Transaction failed ({exc.pgcode}): {exc}")
                raise translate_error(exc) from exc
            except BaseException:
                _safe_rollback(conn)
                raise
        finally:
            self._release(conn)

    def table(self, name: str, schema=None):
        """Start a query builder bound to this handle."""
        from .query_builder import QueryBuilder

        return QueryBuilder.from_table(self, name, schema=schema)

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def test_connection(self) -> bool:
        """Round-trip a trivial statement to check the database is reachable."""
        result = self.execute("SELECT NOW() AS current_time")
        if not result.ok:
            logger.error(f"Database connection test failed: {result.error.message}")
            return False
        logger.info(f"Database connection test successful: {result.data[0]['current_time']}")
        return True

    def pool_status(self) -> dict[str, Any]:
        """Counts of borrowed and idle connections."""
        return {
            "in_use": len(getattr(self._pool, "_used", {})),
            "idle": len(getattr(self._pool, "_pool", [])),
            "max": getattr(self._pool, "maxconn", None),
            "closed": bool(getattr(self._pool, "closed", False)),
        }

    def query_stats(self) -> list[dict[str, Any]]:
        """Per-statement counts and timings, slowest average first."""
        return self._monitor.stats()

    def clear_query_stats(self) -> None:
        self._monitor.clear()

    def close(self) -> None:
        """Close every pooled connection."""
        if getattr(self._pool, "closed", False):
            return
        self._pool.closeall()
        logger.info("Database pool closed")
