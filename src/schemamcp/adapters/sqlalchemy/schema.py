"""
SQLAlchemy tables derived from the schema model.

Every entity becomes a ``Table`` named after its qualified name with dots
replaced by underscores. Draft-enabled entities, and the composition children
of draft-enabled entities, also get a ``<table>_drafts`` shadow table, and a
single administrative table tracks who owns each draft.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    LargeBinary,
    MetaData,
    Numeric,
    SmallInteger,
    String,
    Table,
    Text,
    Time,
)
from sqlalchemy.types import TypeDecorator

from schemamcp.core.errors import AnnotationError
from schemamcp.logging import get_logger
from schemamcp.model.reader import DefinitionView, ModelReader

DRAFT_ADMIN_TABLE = "DRAFT_DraftAdministrativeData"
DRAFT_ADMIN_LINK = "DraftAdministrativeData_DraftUUID"
DRAFT_SUFFIX = "_drafts"

logger = get_logger(__name__)


class PreciseInteger(TypeDecorator):
    """64-bit integer that also accepts the string form used for precision safety."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if isinstance(value, str):
            return int(value)
        return value


class PreciseDecimal(TypeDecorator):
    """Decimal that binds strings and floats through ``Decimal``."""

    impl = Numeric
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if isinstance(value, (str, float, int)) and not isinstance(value, bool):
            return Decimal(str(value))
        return value


def _column_type(base: str, raw: dict[str, Any]) -> Any:
    match base:
        case "UUID":
            return String(36)
        case "String":
            return String(raw.get("length")) if raw.get("length") else String()
        case "LargeString":
            return Text()
        case "Integer" | "Int32":
            return Integer()
        case "Int16" | "UInt8":
            return SmallInteger()
        case "Int64":
            return PreciseInteger()
        case "Decimal":
            return PreciseDecimal(raw.get("precision"), raw.get("scale"))
        case "Double":
            return Float()
        case "Boolean":
            return Boolean()
        case "Date":
            return Date()
        case "Time":
            return Time()
        case "DateTime" | "Timestamp":
            return DateTime(timezone=True)
        case "Binary" | "LargeBinary":
            return LargeBinary()
        case _:
            return String()


def table_name(qualified_name: str) -> str:
    return qualified_name.replace(".", "_")


def _entity_columns(definition: DefinitionView) -> list[Column]:
    raw_elements = definition.raw.get("elements") or {}
    keys = [name for name, elem in definition.elements.items() if elem.key and not elem.is_navigation]
    columns = []
    for name, elem in definition.elements.items():
        raw = raw_elements.get(name) or {}
        if elem.is_navigation or raw.get("virtual"):
            continue
        column_type = JSON() if elem.type.is_array else _column_type(elem.type.base, raw)
        columns.append(
            Column(
                name,
                column_type,
                primary_key=elem.key,
                autoincrement=len(keys) == 1 and elem.key and isinstance(column_type, Integer),
                info={"cds_type": elem.type.base},
            )
        )
    return columns


def _draft_columns() -> list[Column]:
    return [
        Column("IsActiveEntity", Boolean(), nullable=False, default=False),
        Column("HasActiveEntity", Boolean(), nullable=False, default=False),
        Column("HasDraftEntity", Boolean(), nullable=False, default=False),
        Column(DRAFT_ADMIN_LINK, String(36), nullable=True),
    ]


class EntityTables:
    """
    Tables for every entity of a model.

    Example:
        tables = build_tables(reader)
        async with engine.begin() as conn:
            await conn.run_sync(tables.metadata.create_all)
    """

    def __init__(self, metadata: MetaData) -> None:
        self.metadata = metadata
        self._tables: dict[str, Table] = {}
        self._drafts: dict[str, Table] = {}
        self.draft_admin = Table(
            DRAFT_ADMIN_TABLE,
            metadata,
            Column("DraftUUID", String(36), primary_key=True),
            Column("CreationDateTime", DateTime(timezone=True)),
            Column("CreatedByUser", String(256)),
            Column("LastChangeDateTime", DateTime(timezone=True)),
            Column("LastChangedByUser", String(256)),
            Column("InProcessByUser", String(256)),
        )

    def add(self, definition: DefinitionView, *, with_draft: bool = False) -> Table:
        table = Table(table_name(definition.name), self.metadata, *_entity_columns(definition))
        self._tables[definition.name] = table
        if with_draft:
            self._drafts[definition.name] = Table(
                table_name(definition.name) + DRAFT_SUFFIX,
                self.metadata,
                *_entity_columns(definition),
                *_draft_columns(),
            )
        return table

    def get(self, qualified_name: str) -> Table | None:
        return self._tables.get(qualified_name)

    def draft(self, qualified_name: str) -> Table | None:
        return self._drafts.get(qualified_name)

    def __contains__(self, qualified_name: object) -> bool:
        return qualified_name in self._tables


def build_tables(reader: ModelReader, metadata: MetaData | None = None) -> EntityTables:
    """
    Build a table per entity.

    An entity whose element types cannot be resolved gets no table and is
    logged; the other entities are unaffected.
    """
    tables = EntityTables(metadata or MetaData())
    for definition in reader.entities():
        with_draft = (
            definition.is_draft_enabled
            or reader.composition_parent(definition.name) is not None
        )
        try:
            tables.add(definition, with_draft=with_draft)
        except AnnotationError as e:
            logger.warning("Skipping table for invalid entity", entity=definition.name, reason=e.message)
    return tables
