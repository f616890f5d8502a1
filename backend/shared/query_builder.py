"""
Fluent, parameterized query builder.

Composes SELECT/INSERT/UPDATE/DELETE statements against one table:

    result = (
        connections.table("accounts")
        .equals("email", "a@x.com")
        .limit(1)
        .select("id,email")
    )

Builders are immutable: every filter/ordering call returns a new builder,
so a chain can be branched or dropped without affecting any other.

Values always travel as driver parameters. Identifiers cannot be bound,
so they are validated (and optionally checked against an allow-list)
and emitted through psycopg2.sql.Identifier; that is the only place
statement text is assembled.
"""

import logging
import re
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Union

from psycopg2 import sql

from .database import IStatementExecutor, QueryResult
from .exceptions import InvalidIdentifierError, MissingFilterError, StatementError

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# table name -> allowed column names
SchemaAllowList = Mapping[str, Collection[str]]


class Operator(str, Enum):
    """Filter operators understood by the builder."""

    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    GREATER_OR_EQUAL = ">="
    LESS_THAN = "<"
    LESS_OR_EQUAL = "<="
    LIKE = "LIKE"
    ILIKE = "ILIKE"
    IN = "IN"
    IS_NULL = "IS NULL"


@dataclass(frozen=True)
class QueryCondition:
    """One (column, operator, value) filter; value is always bound."""

    column: str
    operator: Operator
    value: Any = None


@dataclass(frozen=True)
class QueryBuilder:
    """Immutable statement builder bound to one table and one executor."""

    executor: IStatementExecutor
    table: str
    schema: Optional[SchemaAllowList] = None
    conditions: tuple[QueryCondition, ...] = ()
    ordering: Optional[tuple[str, bool]] = None
    row_limit: Optional[int] = None
    single_row: bool = False

    @classmethod
    def from_table(
        cls,
        executor: IStatementExecutor,
        table: str,
        schema: Optional[SchemaAllowList] = None,
    ) -> "QueryBuilder":
        """Start a builder for ``table`` executing through ``executor``."""
        return cls(executor=executor, table=table, schema=schema)

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def _where(self, column: str, operator: Operator, value: Any = None) -> "QueryBuilder":
        return replace(
            self,
            conditions=self.conditions + (QueryCondition(column, operator, value),),
        )

    def equals(self, column: str, value: Any) -> "QueryBuilder":
        return self._where(column, Operator.EQUALS, value)

    def not_equals(self, column: str, value: Any) -> "QueryBuilder":
        return self._where(column, Operator.NOT_EQUALS, value)

    def greater_than(self, column: str, value: Any) -> "QueryBuilder":
        return self._where(column, Operator.GREATER_THAN, value)

    def greater_or_equal(self, column: str, value: Any) -> "QueryBuilder":
        return self._where(column, Operator.GREATER_OR_EQUAL, value)

    def less_than(self, column: str, value: Any) -> "QueryBuilder":
        return self._where(column, Operator.LESS_THAN, value)

    def less_or_equal(self, column: str, value: Any) -> "QueryBuilder":
        return self._where(column, Operator.LESS_OR_EQUAL, value)

    def like(self, column: str, pattern: str) -> "QueryBuilder":
        return self._where(column, Operator.LIKE, pattern)

    def ilike(self, column: str, pattern: str) -> "QueryBuilder":
        return self._where(column, Operator.ILIKE, pattern)

    def in_(self, column: str, values: Iterable[Any]) -> "QueryBuilder":
        """
        Match any of ``values``. An empty collection matches no rows.

        A bare string is one value, not a sequence of characters.
        """
        if isinstance(values, (str, bytes)):
            values = (values,)
        return self._where(column, Operator.IN, tuple(values))

    def is_null(self, column: str, value: Any = None) -> "QueryBuilder":
        """Match NULL. Any value argument is ignored."""
        return self._where(column, Operator.IS_NULL)

    # -------------------------------------------------------------------------
    # Modifiers
    # -------------------------------------------------------------------------

    def order_by(self, column: str, ascending: bool = True) -> "QueryBuilder":
        """Set the single ORDER BY clause; the last call wins."""
        return replace(self, ordering=(column, ascending))

    def limit(self, count: int) -> "QueryBuilder":
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ValueError(f"limit must be a non-negative integer, got {count!r}")
        return replace(self, row_limit=count)

    def single(self) -> "QueryBuilder":
        """Make select() return the first row (or None) instead of a list."""
        return replace(self, single_row=True)

    # -------------------------------------------------------------------------
    # Terminal operations
    # -------------------------------------------------------------------------

    def select(self, fields: Union[str, Sequence[str]] = "*") -> QueryResult:
        """Run a SELECT of ``fields`` ("*", "id,email" or a list of names)."""
        try:
            statement, params = self._compile_select(fields)
        except StatementError as error:
            return QueryResult(error=error)

        result = self.executor.execute(statement, params)
        if result.ok and self.single_row:
            return QueryResult(data=result.data[0] if result.data else None)
        return result

    def insert(self, rows: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]) -> QueryResult:
        """Insert one row or a batch of rows; returns the inserted rows."""
        try:
            statement, params = self._compile_insert(rows)
        except StatementError as error:
            return QueryResult(error=error)
        return self.executor.execute(statement, params)

    def update(self, patch: Mapping[str, Any]) -> QueryResult:
        """
        Update the filtered rows with ``patch``; returns the updated rows.

        Fails with MissingFilterError, without executing anything, when no
        filter has been added.
        """
        try:
            statement, params = self._compile_update(patch)
        except StatementError as error:
            return QueryResult(error=error)
        return self.executor.execute(statement, params)

    def delete(self) -> QueryResult:
        """
        Delete the filtered rows; returns the deleted rows.

        Fails with MissingFilterError, without executing anything, when no
        filter has been added.
        """
        try:
            statement, params = self._compile_delete()
        except StatementError as error:
            return QueryResult(error=error)
        return self.executor.execute(statement, params)

    # -------------------------------------------------------------------------
    # Compilation
    # -------------------------------------------------------------------------

    def _table_identifier(self) -> sql.Identifier:
        parts = self.table.split(".")
        if len(parts) > 2 or not all(_IDENTIFIER.match(p) for p in parts):
            raise InvalidIdentifierError(self.table)
        if self.schema is not None and self.table not in self.schema:
            raise InvalidIdentifierError(self.table)
        return sql.Identifier(*parts)

    def _column(self, name: str) -> sql.Identifier:
        if not isinstance(name, str) or not _IDENTIFIER.match(name):
            raise InvalidIdentifierError(str(name))
        if self.schema is not None and name not in self.schema.get(self.table, ()):
            raise InvalidIdentifierError(f"{self.table}.{name}")
        return sql.Identifier(name)

    def _fields(self, fields: Union[str, Sequence[str]]) -> sql.Composable:
        if isinstance(fields, str):
            names = [f.strip() for f in fields.split(",") if f.strip()]
        else:
            names = list(fields)
        if not names or names == ["*"]:
            return sql.SQL("*")
        return sql.SQL(", ").join(self._column(n) for n in names)

    def _compile_where(self) -> tuple[sql.Composable, list[Any]]:
        if not self.conditions:
            return sql.SQL(""), []

        clauses: list[sql.Composable] = []
        params: list[Any] = []
        for condition in self.conditions:
            column = self._column(condition.column)
            if condition.operator is Operator.IS_NULL:
                clauses.append(sql.SQL("{} IS NULL").format(column))
            elif condition.operator is Operator.IN:
                if not condition.value:
                    clauses.append(sql.SQL("FALSE"))
                    continue
                placeholders = sql.SQL(", ").join([sql.Placeholder()] * len(condition.value))
                clauses.append(sql.SQL("{} IN ({})").format(column, placeholders))
                params.extend(condition.value)
            else:
                clauses.append(
                    sql.SQL("{} {} {}").format(
                        column, sql.SQL(condition.operator.value), sql.Placeholder()
                    )
                )
                params.append(condition.value)

        return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), params

    def _require_filter(self, operation: str) -> None:
        if not self.conditions:
            logger.error(f"Refused unfiltered {operation} on '{self.table}'")
            raise MissingFilterError(operation, self.table)

    def _reject_modifiers(self, operation: str) -> None:
        if self.ordering is not None or self.row_limit is not None:
            logger.error(f"Refused {operation} with order_by/limit on '{self.table}'")
            raise StatementError(
                f"order_by and limit are not supported on {operation}",
                code=f"INVALID_{operation.upper()}",
            )

    def _compile_select(self, fields) -> tuple[sql.Composable, list[Any]]:
        table = self._table_identifier()
        where, params = self._compile_where()
        statement = sql.SQL("SELECT {} FROM {}").format(self._fields(fields), table) + where

        if self.ordering is not None:
            column, ascending = self.ordering
            statement += sql.SQL(" ORDER BY {} {}").format(
                self._column(column), sql.SQL("ASC" if ascending else "DESC")
            )
        if self.row_limit is not None:
            statement += sql.SQL(" LIMIT {}").format(sql.Placeholder())
            params.append(self.row_limit)

        return statement, params

    def _compile_insert(self, rows) -> tuple[sql.Composable, list[Any]]:
        table = self._table_identifier()
        if isinstance(rows, Mapping):
            rows = [rows]
        rows = list(rows)
        if not rows or not rows[0]:
            raise StatementError("Nothing to insert", code="EMPTY_INSERT")
        if self.conditions:
            raise StatementError("Filters are not allowed on insert", code="INVALID_INSERT")
        self._reject_modifiers("insert")

        columns = list(rows[0].keys())
        params: list[Any] = []
        values: list[sql.Composable] = []
        for row in rows:
            if set(row.keys()) != set(columns):
                raise StatementError("All inserted rows must have the same columns", code="INVALID_INSERT")
            values.append(
                sql.SQL("({})").format(sql.SQL(", ").join([sql.Placeholder()] * len(columns)))
            )
            params.extend(row[c] for c in columns)

        statement = sql.SQL("INSERT INTO {} ({}) VALUES {} RETURNING *").format(
            table,
            sql.SQL(", ").join(self._column(c) for c in columns),
            sql.SQL(", ").join(values),
        )
        return statement, params

    def _compile_update(self, patch) -> tuple[sql.Composable, list[Any]]:
        self._require_filter("update")
        self._reject_modifiers("update")
        table = self._table_identifier()
        if not patch:
            raise StatementError("Nothing to update", code="EMPTY_UPDATE")

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(self._column(c), sql.Placeholder()) for c in patch
        )
        params = list(patch.values())
        where, where_params = self._compile_where()
        statement = (
            sql.SQL("UPDATE {} SET {}").format(table, assignments)
            + where
            + sql.SQL(" RETURNING *")
        )
        return statement, params + where_params

    def _compile_delete(self) -> tuple[sql.Composable, list[Any]]:
        self._require_filter("delete")
        self._reject_modifiers("delete")
        table = self._table_identifier()
        where, params = self._compile_where()
        statement = sql.SQL("DELETE FROM {}").format(table) + where + sql.SQL(" RETURNING *")
        return statement, params
