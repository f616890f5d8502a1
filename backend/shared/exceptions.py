"""
Base exception classes for the Hemera access layer.

Each module should define its own exceptions that inherit from these bases.
This enables consistent error handling across the application.
"""

from typing import Optional, Any


class HemeraError(Exception):
    """
    Base exception for all Hemera errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(HemeraError):
    """Required configuration is missing or invalid. Fatal at startup."""

    def __init__(self, errors: list[str]):
        super().__init__(
            "Invalid configuration: " + "; ".join(errors),
            code="CONFIGURATION_ERROR",
            details={"errors": errors},
        )
        self.errors = errors


class NotFoundError(HemeraError):
    """Resource not found."""

    pass


class ValidationError(HemeraError):
    """Input validation failed."""

    pass


class AuthenticationError(HemeraError):
    """Authentication failed (invalid or missing credentials)."""

    pass


class AuthorizationError(HemeraError):
    """Authorization failed (insufficient permissions)."""

    pass


# -----------------------------------------------------------------------------
# Data layer
# -----------------------------------------------------------------------------


class DatabaseError(HemeraError):
    """
    Base class for every failure surfaced by the data layer.

    ``retryable`` tells callers whether a bounded retry with backoff
    may succeed (connection-level trouble) or not (statement-level).
    """

    retryable: bool = False


class ConnectionFailedError(DatabaseError):
    """The database could not be reached or the connection dropped."""

    retryable = True

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message, code="CONNECTION_FAILED")


class PoolExhaustedError(DatabaseError):
    """Every pooled connection is in use."""

    retryable = True

    def __init__(self, message: str = "Database connection pool exhausted"):
        super().__init__(message, code="POOL_EXHAUSTED")


class QueryTimeoutError(DatabaseError):
    """The statement exceeded its timeout and was cancelled."""

    retryable = True

    def __init__(self, message: str = "Database statement timed out"):
        super().__init__(message, code="QUERY_TIMEOUT")


class StatementError(DatabaseError):
    """
    The statement itself was rejected (constraint violation, unknown
    table or column, ...). Never retried.

    ``message`` is safe to show to users; the raw engine error is logged
    where the statement failed.
    """

    def __init__(
        self,
        message: str = "Database statement failed",
        code: Optional[str] = None,
        pgcode: Optional[str] = None,
    ):
        details = {"pgcode": pgcode} if pgcode else {}
        super().__init__(message, code=code or "STATEMENT_ERROR", details=details)
        self.pgcode = pgcode


class MissingFilterError(StatementError):
    """UPDATE or DELETE was requested without any filter condition."""

    def __init__(self, operation: str, table: str):
        super().__init__(
            f"Refusing to {operation} '{table}' without a filter condition",
            code="MISSING_FILTER",
        )
        self.details.update({"operation": operation, "table": table})


class InvalidIdentifierError(StatementError):
    """A table or column name failed identifier validation."""

    def __init__(self, identifier: str):
        super().__init__(
            f"Invalid identifier: {identifier!r}",
            code="INVALID_IDENTIFIER",
        )
        self.details["identifier"] = identifier
