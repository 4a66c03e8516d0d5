"""
Query compilation and execution for entity resources.

Validated ``QueryArgs`` are turned into SQLAlchemy Core statements. Stages run
in a fixed order (expansion, columns, ordering, predicate, pagination) and each
fails fast with a typed error. Literal values are always bound parameters of
the structured expression, never spliced into SQL text.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Table, and_, func, literal_column, or_, select
from sqlalchemy.sql import ColumnElement, Select

from schemamcp.adapters.base import DataService
from schemamcp.annotations.structures import AssociationInfo, ResourceAnnotation
from schemamcp.core.dsl import OrderByClause, QueryArgs, WhereClause, WhereOp
from schemamcp.core.errors import FilterParseError, QueryFailedError, SchemaMcpError
from schemamcp.core.types import ReturnMode
from schemamcp.logging import get_logger
from schemamcp.policy.redaction import OmissionFilter
from schemamcp.utils.timeout import DEFAULT_TIMEOUT_MS, with_timeout

logger = get_logger(__name__)


@dataclass
class Expansion:
    """A follow-up select attaching one association to the main rows."""

    association: AssociationInfo
    table: Table
    columns: list[str]

    @property
    def parent_column(self) -> str:
        """Column of the main rows whose value identifies the related rows."""
        if self.association.many:
            return self.association.parent_key or ""
        return self.association.foreign_key or ""

    @property
    def child_column(self) -> str:
        if self.association.many:
            return self.association.backlink_foreign_key or ""
        return self.association.target_key or ""


@dataclass
class CompiledQuery:
    """
    A compiled read.

    ``hidden`` lists columns fetched only to join expansions; they are removed
    from the rows before they are returned.
    """

    statement: Select
    args: QueryArgs
    table: Table
    columns: list[str]
    predicate: ColumnElement | None = None
    hidden: list[str] = field(default_factory=list)
    expansions: list[Expansion] = field(default_factory=list)


def coerce_literal(base: str, value: Any) -> Any:
    """Parse ISO strings for temporal columns; other values bind as given."""
    if not isinstance(value, str):
        return value
    try:
        match base:
            case "Date":
                return dt.date.fromisoformat(value)
            case "DateTime" | "Timestamp":
                return dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
            case "Time":
                return dt.time.fromisoformat(value)
    except ValueError as e:
        raise FilterParseError(f"Invalid {base} literal: {value!r}") from e
    return value


class QueryCompiler:
    """
    Compiles query arguments for one resource into SQLAlchemy statements.

    The service provides the tables; nothing is executed here.
    """

    def __init__(self, resource: ResourceAnnotation, service: DataService) -> None:
        self.resource = resource
        self.service = service

    @property
    def table(self) -> Table:
        return self.service.entity(self.resource.target)

    def compile(self, args: QueryArgs) -> CompiledQuery:
        table = self.table

        expansions = self._compile_expansions(args.expand)
        columns = self._select_columns(table, args.select)
        hidden = [
            e.parent_column
            for e in expansions
            if e.parent_column and e.parent_column not in columns
        ]
        hidden = list(dict.fromkeys(hidden))

        stmt = select(*[table.c[name] for name in columns + hidden])
        stmt = self._apply_ordering(stmt, table, args.orderby)

        predicate = self.compile_predicate(table, args.where, args.q)
        if predicate is not None:
            stmt = stmt.where(predicate)

        stmt = stmt.limit(args.top).offset(args.skip)

        return CompiledQuery(
            statement=stmt,
            args=args,
            table=table,
            columns=columns,
            predicate=predicate,
            hidden=hidden,
            expansions=expansions,
        )

    def _compile_expansions(self, expand: str | list[str] | None) -> list[Expansion]:
        if not expand:
            return []
        names = list(self.resource.associations) if expand == "*" else expand

        expansions = []
        for name in names:
            info = self.resource.associations.get(name)
            if info is None:
                raise FilterParseError(f"Unknown association: {name}")
            target = self.service.entity(info.target)
            if info.safe_columns is not None:
                columns = list(info.safe_columns)
            else:
                columns = [c.name for c in target.columns]
            expansions.append(Expansion(association=info, table=target, columns=columns))
        return expansions

    def _select_columns(self, table: Table, requested: list[str] | None) -> list[str]:
        safe = [name for name in self.resource.scalar_fields if name in table.c]
        if not requested:
            return safe
        # Omitted or unknown names never reach the statement
        return [name for name in requested if name in safe]

    def _apply_ordering(
        self, stmt: Select, table: Table, orderby: list[OrderByClause] | None
    ) -> Select:
        for clause in orderby or []:
            column = table.c[clause.field]
            stmt = stmt.order_by(column.desc() if clause.dir == "desc" else column.asc())
        return stmt

    def compile_predicate(
        self,
        table: Table,
        where: list[WhereClause] | None,
        q: str | None = None,
    ) -> ColumnElement | None:
        """AND of every where clause plus the quick-search OR chain."""
        conditions = [self._build_single_condition(table, clause) for clause in where or []]

        if q:
            text_columns = [
                table.c[name] for name in self.resource.text_fields if name in table.c
            ]
            if text_columns:
                conditions.append(
                    or_(*[column.contains(q, autoescape=True) for column in text_columns])
                )

        if not conditions:
            return None
        return and_(*conditions) if len(conditions) > 1 else conditions[0]

    def _build_single_condition(self, table: Table, clause: WhereClause) -> ColumnElement:
        if clause.field not in table.c:
            raise FilterParseError(f"Unknown filter field: {clause.field}")
        column = table.c[clause.field]
        base = self.resource.properties[clause.field].base
        value = clause.value
        op = WhereOp(clause.op)

        if op == WhereOp.IN:
            if not isinstance(value, list):
                raise FilterParseError(f"Operator 'in' on '{clause.field}' requires a list")
            return column.in_([coerce_literal(base, v) for v in value])
        if isinstance(value, list):
            raise FilterParseError(f"Operator '{op.value}' on '{clause.field}' takes a single value")

        value = coerce_literal(base, value)
        match op:
            case WhereOp.EQ:
                return column.is_(None) if value is None else column == value
            case WhereOp.NE:
                return column.is_not(None) if value is None else column != value
            case WhereOp.GT:
                return column > value
            case WhereOp.GE:
                return column >= value
            case WhereOp.LT:
                return column < value
            case WhereOp.LE:
                return column <= value
            case WhereOp.CONTAINS:
                return column.contains(str(value), autoescape=True)
            case WhereOp.STARTSWITH:
                return column.startswith(str(value), autoescape=True)
            case WhereOp.ENDSWITH:
                return column.endswith(str(value), autoescape=True)
            case _:
                raise FilterParseError(f"Unsupported operator: {op.value}")

    def window(self, compiled: CompiledQuery) -> Any:
        """The filtered, ordered and paginated rows as a subquery of scalar columns."""
        table = compiled.table
        columns = [table.c[name] for name in self.resource.scalar_fields if name in table.c]
        stmt = self._apply_ordering(select(*columns), table, compiled.args.orderby)
        if compiled.predicate is not None:
            stmt = stmt.where(compiled.predicate)
        return stmt.limit(compiled.args.top).offset(compiled.args.skip).subquery("query_window")

    def count_statement(self, compiled: CompiledQuery) -> Select:
        """``count(1) as count`` over the query window."""
        return select(func.count(literal_column("1")).label("count")).select_from(
            self.window(compiled)
        )

    def aggregate_statement(self, compiled: CompiledQuery) -> Select | None:
        """One ``<fn>(<field>) as <fn>_<field>`` per requested aggregate."""
        clauses = compiled.args.aggregate or []
        if not clauses:
            return None
        window = self.window(compiled)
        return select(
            *[
                self._build_aggregate_expr(clause.fn.value, window.c[clause.field]).label(
                    f"{clause.fn.value}_{clause.field}"
                )
                for clause in clauses
            ]
        )

    def _build_aggregate_expr(self, fn: str, column: Any) -> Any:
        match fn:
            case "count":
                return func.count(column)
            case "sum":
                return func.sum(column)
            case "avg":
                return func.avg(column)
            case "min":
                return func.min(column)
            case "max":
                return func.max(column)
            case _:
                raise FilterParseError(f"Unsupported aggregate function: {fn}")


class QueryExecutor:
    """
    Runs compiled queries with a timeout and post-filters the result.

    Example:
        executor = QueryExecutor(resource, service)
        rows = await executor.execute(args)
    """

    def __init__(
        self,
        resource: ResourceAnnotation,
        service: DataService,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.resource = resource
        self.service = service
        self.timeout_ms = timeout_ms
        self.compiler = QueryCompiler(resource, service)
        self.log = logger.bind(entity=resource.qualified_name)
        self.omission = OmissionFilter(
            resource.omitted_fields,
            {name: info.omitted_fields for name, info in resource.associations.items()},
        )

    async def execute(self, args: QueryArgs) -> Any:
        try:
            compiled = self.compiler.compile(args)
            label = f"Query {self.resource.target}"
            match args.return_mode:
                case ReturnMode.COUNT:
                    rows = await with_timeout(
                        self.service.read(self.compiler.count_statement(compiled)),
                        self.timeout_ms,
                        label=label,
                    )
                    result: Any = {"count": rows[0]["count"] if rows else 0}
                case ReturnMode.AGGREGATE:
                    stmt = self.compiler.aggregate_statement(compiled)
                    result = (
                        []
                        if stmt is None
                        else await with_timeout(self.service.read(stmt), self.timeout_ms, label=label)
                    )
                case _:
                    result = await with_timeout(
                        self.fetch_rows(compiled), self.timeout_ms, label=label
                    )
        except SchemaMcpError:
            raise
        except Exception as e:
            self.log.error("Query failed", exc_info=True)
            raise QueryFailedError(e) from e

        result = self.omission.apply(result)
        if args.explain:
            return {"data": result, "plan": None}
        return result

    async def fetch_rows(self, compiled: CompiledQuery) -> list[dict[str, Any]]:
        rows = await self.service.read(compiled.statement)
        for expansion in compiled.expansions:
            await self._attach(rows, expansion)
        if compiled.hidden:
            for row in rows:
                for name in compiled.hidden:
                    row.pop(name, None)
        return rows

    async def _attach(self, rows: list[dict[str, Any]], expansion: Expansion) -> None:
        name = expansion.association.name
        many = expansion.association.many
        parent_column, child_column = expansion.parent_column, expansion.child_column

        values = {row.get(parent_column) for row in rows} - {None}
        related: dict[Any, list[dict[str, Any]]] = {}
        if values and child_column in expansion.table.c:
            columns = list(dict.fromkeys(expansion.columns + [child_column]))
            stmt = select(*[expansion.table.c[c] for c in columns if c in expansion.table.c]).where(
                expansion.table.c[child_column].in_(values)
            )
            for child in await self.service.read(stmt):
                key = child[child_column]
                if child_column not in expansion.columns:
                    child.pop(child_column)
                related.setdefault(key, []).append(child)

        for row in rows:
            children = related.get(row.get(parent_column), [])
            row[name] = children if many else (children[0] if children else None)
