"""Tests for shared/query_builder.py."""

import pytest

from shared.database import QueryResult
from shared.exceptions import InvalidIdentifierError, MissingFilterError, StatementError
from shared.query_builder import Operator, QueryBuilder, QueryCondition


class TestFilters:
    def test_email_lookup_is_parameterized(self, executor, render_sql):
        """The email travels as a parameter, never in the statement text."""
        executor.results = [QueryResult(data=[{"id": "1", "email": "a@x.com"}])]

        result = (
            QueryBuilder.from_table(executor, "accounts")
            .equals("email", "a@x.com")
            .limit(1)
            .select("id,email")
        )

        assert result.ok
        assert result.data == [{"id": "1", "email": "a@x.com"}]
        statement, params = executor.calls[0]
        text = render_sql(statement)
        assert text == 'SELECT "id", "email" FROM "accounts" WHERE "email" = %s LIMIT %s'
        assert params == ["a@x.com", 1]
        assert "a@x.com" not in text

    def test_each_filter_adds_one_condition(self, executor):
        base = executor.table("accounts")
        filtered = base.equals("email", "a@x.com")

        assert filtered.conditions == (QueryCondition("email", Operator.EQUALS, "a@x.com"),)

    def test_builder_is_immutable(self, executor, render_sql):
        """Branching a chain never leaks conditions into the other branch."""
        base = executor.table("accounts")
        base.equals("email", "a@x.com")

        base.select()

        statement, params = executor.calls[0]
        assert render_sql(statement) == 'SELECT * FROM "accounts"'
        assert params == []

    @pytest.mark.parametrize(
        "method,op",
        [
            ("equals", "="),
            ("not_equals", "!="),
            ("greater_than", ">"),
            ("greater_or_equal", ">="),
            ("less_than", "<"),
            ("less_or_equal", "<="),
            ("like", "LIKE"),
            ("ilike", "ILIKE"),
        ],
    )
    def test_comparison_operators(self, executor, render_sql, method, op):
        getattr(executor.table("accounts"), method)("email", "v").select()

        statement, params = executor.calls[0]
        assert render_sql(statement) == f'SELECT * FROM "accounts" WHERE "email" {op} %s'
        assert params == ["v"]

    def test_conditions_are_joined_with_and(self, executor, render_sql):
        (
            executor.table("profiles")
            .equals("department", "ops")
            .not_equals("role", "admin")
            .select("user_id")
        )

        statement, params = executor.calls[0]
        assert render_sql(statement) == (
            'SELECT "user_id" FROM "profiles" WHERE "department" = %s AND "role" != %s'
        )
        assert params == ["ops", "admin"]

    def test_conditions_on_same_column_are_all_kept(self, executor, render_sql):
        (
            executor.table("accounts")
            .greater_than("created_at", "2026-01-01")
            .less_than("created_at", "2026-02-01")
            .select("id")
        )

        statement, params = executor.calls[0]
        assert render_sql(statement) == (
            'SELECT "id" FROM "accounts" WHERE "created_at" > %s AND "created_at" < %s'
        )
        assert params == ["2026-01-01", "2026-02-01"]

    def test_in_binds_every_value(self, executor, render_sql):
        executor.table("profiles").in_("role", ["admin", "super_admin"]).select()

        statement, params = executor.calls[0]
        assert render_sql(statement) == 'SELECT * FROM "profiles" WHERE "role" IN (%s, %s)'
        assert params == ["admin", "super_admin"]

    def test_in_with_bare_string_is_one_value(self, executor, render_sql):
        executor.table("profiles").in_("role", "admin").select()

        statement, params = executor.calls[0]
        assert render_sql(statement) == 'SELECT * FROM "profiles" WHERE "role" IN (%s)'
        assert params == ["admin"]

    def test_empty_in_matches_nothing(self, executor, render_sql):
        executor.table("profiles").in_("role", []).select()

        statement, params = executor.calls[0]
        assert render_sql(statement) == 'SELECT * FROM "profiles" WHERE FALSE'
        assert params == []

    def test_is_null_ignores_value(self, executor, render_sql):
        executor.table("accounts").is_null("last_sign_in_at", "ignored").select()

        statement, params = executor.calls[0]
        assert render_sql(statement) == 'SELECT * FROM "accounts" WHERE "last_sign_in_at" IS NULL'
        assert params == []


class TestModifiers:
    def test_order_by_last_call_wins(self, executor, render_sql):
        (
            executor.table("accounts")
            .order_by("email")
            .order_by("created_at", ascending=False)
            .select()
        )

        statement, _ = executor.calls[0]
        assert render_sql(statement) == 'SELECT * FROM "accounts" ORDER BY "created_at" DESC'

    @pytest.mark.parametrize("bad", [-1, 1.5, "10", True])
    def test_limit_rejects_non_integers(self, executor, bad):
        with pytest.raises(ValueError):
            executor.table("accounts").limit(bad)

    def test_single_returns_first_row(self, executor):
        executor.results = [QueryResult(data=[{"id": "1"}, {"id": "2"}])]

        result = executor.table("accounts").equals("id", "1").single().select()

        assert result.data == {"id": "1"}

    def test_single_returns_none_without_rows(self, executor):
        result = executor.table("accounts").equals("id", "1").single().select()

        assert result.ok
        assert result.data is None


class TestWrites:
    def test_insert_returns_rows(self, executor, render_sql):
        executor.results = [QueryResult(data=[{"id": "1", "email": "a@x.com"}])]

        result = executor.table("accounts").insert({"email": "a@x.com", "password_hash": "h"})

        statement, params = executor.calls[0]
        assert render_sql(statement) == (
            'INSERT INTO "accounts" ("email", "password_hash") VALUES (%s, %s) RETURNING *'
        )
        assert params == ["a@x.com", "h"]
        assert result.data[0]["id"] == "1"

    def test_batch_insert(self, executor, render_sql):
        executor.table("profiles").insert([
            {"user_id": "1", "role": "user"},
            {"role": "admin", "user_id": "2"},
        ])

        statement, params = executor.calls[0]
        assert render_sql(statement) == (
            'INSERT INTO "profiles" ("user_id", "role") VALUES (%s, %s), (%s, %s) RETURNING *'
        )
        assert params == ["1", "user", "2", "admin"]

    def test_insert_with_mismatched_rows_fails_without_executing(self, executor):
        result = executor.table("profiles").insert([{"user_id": "1"}, {"role": "admin"}])

        assert isinstance(result.error, StatementError)
        assert executor.calls == []

    def test_empty_insert_fails_without_executing(self, executor):
        result = executor.table("profiles").insert([])

        assert result.error.code == "EMPTY_INSERT"
        assert executor.calls == []

    def test_update_with_filter(self, executor, render_sql):
        executor.table("accounts").equals("id", "1").update({"password_hash": "h2"})

        statement, params = executor.calls[0]
        assert render_sql(statement) == (
            'UPDATE "accounts" SET "password_hash" = %s WHERE "id" = %s RETURNING *'
        )
        assert params == ["h2", "1"]

    def test_update_without_filter_never_executes(self, executor):
        result = executor.table("accounts").update({"email_confirmed": True})

        assert isinstance(result.error, MissingFilterError)
        assert result.error.code == "MISSING_FILTER"
        assert result.data is None
        assert executor.calls == []

    def test_empty_update_fails_without_executing(self, executor):
        result = executor.table("accounts").equals("id", "1").update({})

        assert result.error.code == "EMPTY_UPDATE"
        assert executor.calls == []

    @pytest.mark.parametrize(
        "modifier", [lambda b: b.limit(1), lambda b: b.order_by("created_at")]
    )
    def test_update_with_order_or_limit_never_executes(self, executor, modifier):
        builder = modifier(executor.table("accounts").equals("id", "1"))

        result = builder.update({"email_confirmed": True})

        assert isinstance(result.error, StatementError)
        assert result.error.code == "INVALID_UPDATE"
        assert executor.calls == []

    def test_delete_with_filter(self, executor, render_sql):
        executor.table("profiles").equals("user_id", "1").delete()

        statement, params = executor.calls[0]
        assert render_sql(statement) == 'DELETE FROM "profiles" WHERE "user_id" = %s RETURNING *'
        assert params == ["1"]

    def test_delete_without_filter_never_executes(self, executor):
        result = executor.table("profiles").delete()

        assert isinstance(result.error, MissingFilterError)
        assert result.error.details == {"operation": "delete", "table": "profiles"}
        assert executor.calls == []

    def test_delete_with_limit_never_executes(self, executor):
        result = executor.table("profiles").equals("user_id", "1").limit(10).delete()

        assert result.error.code == "INVALID_DELETE"
        assert executor.calls == []


class TestIdentifiers:
    def test_schema_qualified_table(self, executor, render_sql):
        executor.table("auth.accounts").select()

        statement, _ = executor.calls[0]
        assert render_sql(statement) == 'SELECT * FROM "auth"."accounts"'

    @pytest.mark.parametrize(
        "table",
        ["accounts; DROP TABLE accounts", "a.b.c", "1accounts", "", 'acc"ounts'],
    )
    def test_invalid_table_names(self, executor, table):
        result = executor.table(table).select()

        assert isinstance(result.error, InvalidIdentifierError)
        assert executor.calls == []

    def test_invalid_column_in_filter(self, executor):
        result = executor.table("accounts").equals("email OR 1=1", "x").select()

        assert isinstance(result.error, InvalidIdentifierError)
        assert executor.calls == []

    def test_invalid_field_list(self, executor):
        result = executor.table("accounts").select("id, email; --")

        assert isinstance(result.error, InvalidIdentifierError)
        assert executor.calls == []

    def test_allow_list_rejects_unknown_table(self, executor):
        schema = {"accounts": {"id", "email"}}
        result = QueryBuilder.from_table(executor, "secrets", schema=schema).select()

        assert isinstance(result.error, InvalidIdentifierError)
        assert executor.calls == []

    def test_allow_list_rejects_unknown_column(self, executor):
        schema = {"accounts": {"id", "email"}}
        result = (
            QueryBuilder.from_table(executor, "accounts", schema=schema)
            .equals("password_hash", "x")
            .select("id")
        )

        assert result.error.code == "INVALID_IDENTIFIER"
        assert result.error.details["identifier"] == "accounts.password_hash"
        assert executor.calls == []

    def test_allow_list_accepts_known_columns(self, executor):
        schema = {"accounts": {"id", "email"}}
        result = (
            QueryBuilder.from_table(executor, "accounts", schema=schema)
            .equals("email", "a@x.com")
            .select(["id", "email"])
        )

        assert result.ok
        assert len(executor.calls) == 1


class TestErrors:
    def test_executor_error_is_returned(self, executor):
        error = StatementError("Table does not exist", pgcode="42P01")
        executor.results = [QueryResult(error=error)]

        result = executor.table("accounts").select()

        assert not result.ok
        assert result.error is error
        assert result.data is None
