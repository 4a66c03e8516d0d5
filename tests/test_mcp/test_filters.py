"""
Tests for the resource query parameter parser.
"""

import pytest

from schemamcp.core.dsl import WhereOp
from schemamcp.core.errors import FilterParseError
from schemamcp.mcp.filters import MAX_FILTER_LENGTH, parse_filter, parse_orderby, parse_select

FIELDS = ["ID", "title", "stock", "price", "author_ID"]


class TestParseFilter:
    """Tests for $filter parsing."""

    def test_comparison(self):
        (clause,) = parse_filter("stock gt 10", FIELDS)
        assert clause.field == "stock"
        assert clause.op == WhereOp.GT
        assert clause.value == 10

    def test_conjunction(self):
        clauses = parse_filter("stock ge 1 and title eq 'Emma' and price lt 9.5", FIELDS)
        assert [(c.field, c.op, c.value) for c in clauses] == [
            ("stock", WhereOp.GE, 1),
            ("title", WhereOp.EQ, "Emma"),
            ("price", WhereOp.LT, 9.5),
        ]

    def test_doubled_quote(self):
        (clause,) = parse_filter("contains(title,'O''Brien')", FIELDS)
        assert clause.op == WhereOp.CONTAINS
        assert clause.value == "O'Brien"

    def test_string_functions(self):
        clauses = parse_filter("startswith(title,'The') and endswith(title, 'man')", FIELDS)
        assert [c.op for c in clauses] == [WhereOp.STARTSWITH, WhereOp.ENDSWITH]

    def test_in_list(self):
        (clause,) = parse_filter("ID in (201, 207,251)", FIELDS)
        assert clause.op == WhereOp.IN
        assert clause.value == [201, 207, 251]

    def test_keywords(self):
        clauses = parse_filter("author_ID eq null and title ne 'x'", FIELDS)
        assert clauses[0].value is None

    def test_negative_number(self):
        (clause,) = parse_filter("stock gt -1", FIELDS)
        assert clause.value == -1

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "secret eq 'x'",
            "stock like 1",
            "stock gt",
            "stock gt 1 or stock lt 0",
            "contains(title 'x')",
            "title eq 'unterminated",
            "stock gt 1; drop table books",
            "ID in (1, 2",
        ],
    )
    def test_rejected(self, text):
        with pytest.raises(FilterParseError):
            parse_filter(text, FIELDS)

    def test_too_long(self):
        text = " and ".join(["stock gt 1"] * 100)
        assert len(text) > MAX_FILTER_LENGTH
        with pytest.raises(FilterParseError, match="longer than"):
            parse_filter(text, FIELDS)

    def test_unknown_field_hint(self):
        with pytest.raises(FilterParseError) as exc_info:
            parse_filter("secret eq 'x'", FIELDS)
        assert exc_info.value.retry_hints


class TestParseSelectAndOrderby:
    """Tests for $select and $orderby."""

    def test_select(self):
        assert parse_select("ID, title", FIELDS) == ["ID", "title"]

    def test_select_unknown(self):
        with pytest.raises(FilterParseError):
            parse_select("ID,secret", FIELDS)

    def test_orderby(self):
        clauses = parse_orderby("title desc, ID", FIELDS)
        assert [(c.field, c.dir) for c in clauses] == [("title", "desc"), ("ID", "asc")]

    @pytest.mark.parametrize("text", ["title sideways", "secret", "title asc extra", ""])
    def test_orderby_rejected(self, text):
        with pytest.raises(FilterParseError):
            parse_orderby(text, FIELDS)
