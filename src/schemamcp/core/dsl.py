"""
Argument schemas for the entity tools.

The base models describe the structured query language agents use. For each
resource, ``build_query_args_model`` derives a subclass whose field-name
positions are ``Literal`` enums of that resource's safe scalar fields, so an
omitted or navigation field is rejected during validation. The payload
builders do the same for create and update.
"""

from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, create_model

from schemamcp.core.types import (
    PRECISION_SENSITIVE_TYPES,
    SAFE_INTEGER_TYPES,
    AggregateFunction,
    PropertyType,
    ReturnMode,
)

if TYPE_CHECKING:
    from schemamcp.annotations.structures import ResourceAnnotation

MAX_TOP = 200
DEFAULT_TOP = 25

Scalar = str | int | float | bool


class WhereOp(str, Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GE = "ge"
    LT = "lt"
    LE = "le"
    CONTAINS = "contains"
    STARTSWITH = "startswith"
    ENDSWITH = "endswith"
    IN = "in"


class WhereClause(BaseModel):
    """
    A single filter condition. Conditions are AND-ed.

    Examples:
        {"field": "title", "op": "contains", "value": "Wuthering"}
        {"field": "stock", "op": "in", "value": [1, 2, 3]}
    """

    field: str
    op: WhereOp
    value: Scalar | list[Scalar] | None

    model_config = {"frozen": True, "extra": "forbid"}


class OrderByClause(BaseModel):
    field: str
    dir: Literal["asc", "desc"] = "asc"

    model_config = {"frozen": True, "extra": "forbid"}


class AggregateClause(BaseModel):
    field: str
    fn: AggregateFunction

    model_config = {"frozen": True, "extra": "forbid"}


class QueryArgs(BaseModel):
    """
    Arguments of a ``<Entity>_query`` call.

    Example:
        {
            "top": 10,
            "select": ["ID", "title"],
            "where": [{"field": "stock", "op": "gt", "value": 0}],
            "orderby": [{"field": "title", "dir": "asc"}],
            "expand": ["author"],
            "return": "rows"
        }
    """

    top: int = Field(default=DEFAULT_TOP, ge=1, le=MAX_TOP)
    skip: int = Field(default=0, ge=0)
    select: list[str] | None = None
    orderby: list[OrderByClause] | None = None
    where: list[WhereClause] | None = None
    q: str | None = Field(default=None, description="Quick search over text fields")
    return_mode: ReturnMode = Field(default=ReturnMode.ROWS, alias="return")
    aggregate: list[AggregateClause] | None = None
    expand: Literal["*"] | list[str] | None = None
    explain: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


def _names(names: list[str]) -> Any:
    return Literal[tuple(names)] if names else str


def build_query_args_model(resource: "ResourceAnnotation") -> type[QueryArgs]:
    """QueryArgs subclass restricted to the fields of ``resource``."""
    prefix = resource.target
    field_name = _names(resource.scalar_fields)
    association_name = _names(list(resource.associations))

    where_model = create_model(f"{prefix}Where", __base__=WhereClause, field=(field_name, ...))
    orderby_model = create_model(
        f"{prefix}OrderBy", __base__=OrderByClause, field=(field_name, ...)
    )
    aggregate_model = create_model(
        f"{prefix}Aggregate", __base__=AggregateClause, field=(field_name, ...)
    )

    return create_model(
        f"{prefix}QueryArgs",
        __base__=QueryArgs,
        select=(list[field_name] | None, None),
        orderby=(list[orderby_model] | None, None),
        where=(list[where_model] | None, None),
        aggregate=(list[aggregate_model] | None, None),
        expand=(Literal["*"] | list[association_name] | None, None),
    )


def key_input_type(prop: PropertyType) -> Any:
    """Key fields accept both JSON forms; coercion normalizes them."""
    if prop.base in SAFE_INTEGER_TYPES:
        return int | str
    if prop.base in PRECISION_SENSITIVE_TYPES:
        return str | int | float
    return prop.python_type()


def build_keys_model(resource: "ResourceAnnotation", suffix: str) -> type[BaseModel]:
    """Key-only arguments (get/delete). Missing keys are reported later as MISSING_KEY."""
    fields: dict[str, Any] = {
        name: (key_input_type(prop) | None, None) for name, prop in resource.resource_keys.items()
    }
    return create_model(
        f"{resource.target}{suffix}Args",
        __config__=ConfigDict(extra="ignore"),
        **fields,
    )


def _deep_insert_item_model(
    resource: "ResourceAnnotation", association: str
) -> Any:
    item_fields = resource.deep_insert_fields.get(association)
    if not item_fields:
        return dict[str, Any]
    model = create_model(
        f"{resource.target}_{association}Item",
        __config__=ConfigDict(extra="forbid"),
        **{name: (prop.python_type() | None, None) for name, prop in item_fields.items()},
    )
    return model


def build_payload_model(resource: "ResourceAnnotation", mode: str) -> type[BaseModel]:
    """
    Arguments of a create or update call.

    Scalar non-computed properties keep their type (keys use ``key_input_type``),
    deep-insert associations take a list of target rows, and other associations
    are reachable only through their foreign-key field.
    """
    fields: dict[str, Any] = {}
    for name, prop in resource.properties.items():
        if name in resource.computed_fields:
            continue
        if prop.is_navigation:
            if name in resource.deep_insert_refs:
                item = _deep_insert_item_model(resource, name)
                fields[name] = (list[item] | None, None)
            else:
                fk = resource.foreign_key_for(name)
                if fk not in resource.properties:
                    fields[fk] = (Any, None)
            continue
        if name in resource.resource_keys:
            fields[name] = (key_input_type(prop) | None, None)
        else:
            fields[name] = (prop.python_type() | None, None)

    return create_model(
        f"{resource.target}{mode.capitalize()}Args",
        __config__=ConfigDict(extra="ignore"),
        **fields,
    )
