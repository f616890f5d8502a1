"""
Shared infrastructure for the Hemera access layer.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: Pooled PostgreSQL access (ConnectionManager)
- query_builder: Fluent parameterized statement builder
- query_monitor: Per-statement timing statistics
- repository: Base repository
- exceptions: Base exception classes

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .database import ConnectionManager, IStatementExecutor, QueryResult, Transaction
from .query_builder import Operator, QueryBuilder, QueryCondition
from .query_monitor import QueryMonitor
from .exceptions import (
    HemeraError,
    ConfigurationError,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    DatabaseError,
    ConnectionFailedError,
    PoolExhaustedError,
    QueryTimeoutError,
    StatementError,
    MissingFilterError,
    InvalidIdentifierError,
)
from .models import AuthenticatedUser

__all__ = [
    "Settings",
    "get_settings",
    "ConnectionManager",
    "IStatementExecutor",
    "QueryResult",
    "Transaction",
    "Operator",
    "QueryBuilder",
    "QueryCondition",
    "QueryMonitor",
    "HemeraError",
    "ConfigurationError",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "DatabaseError",
    "ConnectionFailedError",
    "PoolExhaustedError",
    "QueryTimeoutError",
    "StatementError",
    "MissingFilterError",
    "InvalidIdentifierError",
    "AuthenticatedUser",
]
