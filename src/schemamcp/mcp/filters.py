"""
Parser for OData-style resource query parameters.

``$filter`` accepts a bounded grammar and yields the same ``WhereClause``
objects the query tools use, so resource reads share the structured
predicate path:

    filter  := clause ("and" clause)*
    clause  := field op literal
             | ("contains" | "startswith" | "endswith") "(" field "," literal ")"
             | field "in" "(" literal ("," literal)* ")"
    op      := eq | ne | gt | ge | lt | le
    literal := 'text' ('' escapes a quote) | number | true | false | null

Anything else raises FILTER_PARSE_ERROR.
"""

import re
from collections.abc import Collection
from typing import Any

from schemamcp.core.dsl import OrderByClause, WhereClause, WhereOp
from schemamcp.core.errors import FilterParseError

MAX_FILTER_LENGTH = 1000

_TOKEN = re.compile(
    r"""
    \s*(?:
        (?P<string>'(?:[^']|'')*')
      | (?P<number>-?\d+(?:\.\d+)?)
      | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
      | (?P<punct>[(),])
    )
    """,
    re.VERBOSE,
)

_COMPARISONS = {"eq", "ne", "gt", "ge", "lt", "le"}
_FUNCTIONS = {"contains", "startswith", "endswith"}
_KEYWORDS = {"true": True, "false": False, "null": None}


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if match is None or match.end() == pos:
            raise FilterParseError(f"Unexpected input at position {pos}: {text[pos:pos + 10]!r}")
        kind = match.lastgroup or ""
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class _FilterParser:
    def __init__(self, text: str, fields: Collection[str]) -> None:
        self.tokens = _tokenize(text)
        self.fields = fields
        self.pos = 0

    def _peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> tuple[str, str]:
        token = self._peek()
        if token is None:
            raise FilterParseError("Unexpected end of filter")
        self.pos += 1
        return token

    def _expect(self, value: str) -> None:
        kind, text = self._next()
        if text.lower() != value:
            raise FilterParseError(f"Expected '{value}', found '{text}'")

    def _field(self) -> str:
        kind, text = self._next()
        if kind != "name" or text not in self.fields:
            raise FilterParseError(
                f"Invalid property in filter: {text}",
                retry_hints=[f"Allowed properties: {', '.join(self.fields)}"],
            )
        return text

    def _literal(self) -> Any:
        kind, text = self._next()
        match kind:
            case "string":
                return text[1:-1].replace("''", "'")
            case "number":
                return float(text) if "." in text else int(text)
            case "name" if text.lower() in _KEYWORDS:
                return _KEYWORDS[text.lower()]
            case _:
                raise FilterParseError(f"Expected a literal, found '{text}'")

    def parse(self) -> list[WhereClause]:
        clauses = [self._clause()]
        while self._peek() is not None:
            self._expect("and")
            clauses.append(self._clause())
        return clauses

    def _clause(self) -> WhereClause:
        kind, text = self._next()
        if kind == "name" and text.lower() in _FUNCTIONS:
            self._expect("(")
            field = self._field()
            self._expect(",")
            value = self._literal()
            self._expect(")")
            return WhereClause(field=field, op=WhereOp(text.lower()), value=value)

        self.pos -= 1
        field = self._field()
        kind, op = self._next()
        op = op.lower()
        if op == "in":
            self._expect("(")
            values = [self._literal()]
            while self._peek() == ("punct", ","):
                self._next()
                values.append(self._literal())
            self._expect(")")
            return WhereClause(field=field, op=WhereOp.IN, value=values)
        if op not in _COMPARISONS:
            raise FilterParseError(f"Invalid operator: {op}")
        return WhereClause(field=field, op=WhereOp(op), value=self._literal())


def parse_filter(text: str, fields: Collection[str]) -> list[WhereClause]:
    """
    Parse a ``$filter`` expression over ``fields``.

    Example:
        parse_filter("stock gt 10 and contains(title,'Heights')", ["title", "stock"])
    """
    if not text or not text.strip():
        raise FilterParseError("Filter parameter cannot be empty")
    if len(text) > MAX_FILTER_LENGTH:
        raise FilterParseError(f"Filter longer than {MAX_FILTER_LENGTH} characters")
    return _FilterParser(text, fields).parse()


def parse_select(text: str, fields: Collection[str]) -> list[str]:
    columns = [c.strip() for c in text.split(",") if c.strip()]
    for column in columns:
        if column not in fields:
            raise FilterParseError(f"Invalid select column: {column}")
    return columns


def parse_orderby(text: str, fields: Collection[str]) -> list[OrderByClause]:
    clauses = []
    for part in text.split(","):
        words = part.split()
        if not words or len(words) > 2:
            raise FilterParseError(f"Invalid orderby clause: {part.strip()!r}")
        if words[0] not in fields:
            raise FilterParseError(f"Invalid orderby property: {words[0]}")
        direction = words[1].lower() if len(words) == 2 else "asc"
        if direction not in ("asc", "desc"):
            raise FilterParseError(f"Invalid orderby direction: {words[1]}")
        clauses.append(OrderByClause(field=words[0], dir=direction))
    return clauses
