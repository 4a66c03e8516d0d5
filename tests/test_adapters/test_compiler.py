"""
Tests for query compilation.

Statements are only compiled here; nothing is executed.
"""

import datetime as dt

import pytest
from sqlalchemy.dialects import sqlite
from sqlalchemy.ext.asyncio import create_async_engine

from schemamcp.adapters.sqlalchemy import QueryCompiler, SQLAlchemyService, build_tables
from schemamcp.adapters.sqlalchemy.compiler import coerce_literal
from schemamcp.core.dsl import AggregateClause, OrderByClause, QueryArgs, WhereClause
from schemamcp.core.errors import FilterParseError


@pytest.fixture
def offline_service(reader):
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    return SQLAlchemyService("CatalogService", engine, build_tables(reader))


@pytest.fixture
def books_compiler(registry, offline_service):
    return QueryCompiler(registry.get_resource("Books"), offline_service)


@pytest.fixture
def authors_compiler(registry, offline_service):
    return QueryCompiler(registry.get_resource("Authors"), offline_service)


def render(statement) -> str:
    return str(statement.compile(dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}))


class TestColumns:
    """Tests for column selection."""

    def test_default_columns_skip_omitted(self, books_compiler):
        compiled = books_compiler.compile(QueryArgs())

        assert compiled.columns == ["ID", "title", "stock", "price", "createdAt", "author_ID"]
        assert "secret" not in str(compiled.statement)

    def test_requested_columns_are_filtered(self, books_compiler):
        args = QueryArgs.model_construct(
            top=10, skip=0, select=["title", "secret", "nope"], orderby=None, where=None,
            q=None, expand=None,
        )
        compiled = books_compiler.compile(args)
        assert compiled.columns == ["title"]

    def test_expansion_adds_hidden_join_column(self, books_compiler):
        compiled = books_compiler.compile(QueryArgs(select=["title"], expand=["author"]))

        assert compiled.hidden == ["author_ID"]
        assert compiled.expansions[0].parent_column == "author_ID"
        assert compiled.expansions[0].child_column == "ID"
        assert compiled.expansions[0].columns == ["ID", "name"]

    def test_unknown_expansion(self, books_compiler):
        args = QueryArgs.model_construct(
            top=10, skip=0, select=None, orderby=None, where=None, q=None, expand=["publisher"]
        )
        with pytest.raises(FilterParseError, match="publisher"):
            books_compiler.compile(args)


class TestPredicates:
    """Tests for structured where clauses."""

    def test_apostrophe_is_bound_and_escaped(self, authors_compiler):
        compiled = authors_compiler.compile(
            QueryArgs(where=[WhereClause(field="name", op="contains", value="O'Brien")])
        )

        params = compiled.statement.compile().params
        assert "O'Brien" in params.values()
        assert "O'Brien" not in str(compiled.statement)
        assert "O''Brien" in render(compiled.statement)

    def test_like_wildcards_escaped(self, books_compiler):
        compiled = books_compiler.compile(
            QueryArgs(where=[WhereClause(field="title", op="startswith", value="100%")])
        )
        assert "100/%" in compiled.statement.compile().params.values()

    def test_conditions_are_anded(self, books_compiler):
        compiled = books_compiler.compile(
            QueryArgs(
                where=[
                    WhereClause(field="stock", op="gt", value=0),
                    WhereClause(field="author_ID", op="eq", value=1),
                ]
            )
        )
        sql = render(compiled.statement)
        assert "stock > 0" in sql
        assert "AND" in sql

    def test_null_comparison(self, books_compiler):
        compiled = books_compiler.compile(
            QueryArgs(where=[WhereClause(field="author_ID", op="eq", value=None)])
        )
        assert "IS NULL" in render(compiled.statement)

    def test_in_list(self, books_compiler):
        compiled = books_compiler.compile(
            QueryArgs(where=[WhereClause(field="ID", op="in", value=[201, 207])])
        )
        assert "IN (201, 207)" in render(compiled.statement)

    def test_in_requires_list(self, books_compiler):
        with pytest.raises(FilterParseError, match="requires a list"):
            books_compiler.compile(QueryArgs(where=[WhereClause(field="ID", op="in", value=201)]))

    def test_list_rejected_for_comparison(self, books_compiler):
        with pytest.raises(FilterParseError, match="single value"):
            books_compiler.compile(
                QueryArgs(where=[WhereClause(field="ID", op="eq", value=[201, 207])])
            )

    def test_quick_search_covers_text_fields(self, books_compiler):
        compiled = books_compiler.compile(QueryArgs(q="Eyre"))
        sql = render(compiled.statement)
        assert "LIKE" in sql
        assert "Eyre" in sql

    def test_temporal_literal(self, books_compiler):
        compiled = books_compiler.compile(
            QueryArgs(where=[WhereClause(field="createdAt", op="ge", value="2024-01-01T00:00:00Z")])
        )
        values = list(compiled.statement.compile().params.values())
        assert dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc) in values


class TestCoerceLiteral:
    """Tests for temporal literal parsing."""

    def test_date(self):
        assert coerce_literal("Date", "2024-02-29") == dt.date(2024, 2, 29)

    def test_time(self):
        assert coerce_literal("Time", "12:30:00") == dt.time(12, 30)

    def test_invalid_date(self):
        with pytest.raises(FilterParseError, match="Invalid Date literal"):
            coerce_literal("Date", "yesterday")

    def test_non_temporal_passthrough(self):
        assert coerce_literal("String", "2024-02-29") == "2024-02-29"


class TestOrderingAndPagination:
    """Tests for ordering, limit and offset."""

    def test_orderby_and_page(self, books_compiler):
        compiled = books_compiler.compile(
            QueryArgs(top=5, skip=10, orderby=[OrderByClause(field="title", dir="desc")])
        )
        sql = render(compiled.statement)
        assert "ORDER BY" in sql
        assert "DESC" in sql
        assert "LIMIT 5" in sql
        assert "OFFSET 10" in sql


class TestCountAndAggregate:
    """Tests for count and aggregate statements over the query window."""

    def test_count_over_window(self, books_compiler):
        compiled = books_compiler.compile(
            QueryArgs(top=3, where=[WhereClause(field="stock", op="gt", value=0)])
        )
        sql = render(books_compiler.count_statement(compiled))

        assert "count(1)" in sql
        assert "query_window" in sql
        assert "LIMIT 3" in sql

    def test_aggregate_labels(self, books_compiler):
        compiled = books_compiler.compile(
            QueryArgs(
                aggregate=[
                    AggregateClause(field="stock", fn="sum"),
                    AggregateClause(field="price", fn="max"),
                ]
            )
        )
        stmt = books_compiler.aggregate_statement(compiled)

        assert [c.name for c in stmt.selected_columns] == ["sum_stock", "max_price"]

    def test_no_aggregate(self, books_compiler):
        compiled = books_compiler.compile(QueryArgs())
        assert books_compiler.aggregate_statement(compiled) is None
