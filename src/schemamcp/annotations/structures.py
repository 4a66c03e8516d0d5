"""
Immutable annotation model.

Built once when the schema is loaded and only read afterwards. Every request
looks annotations up by name through an ``AnnotationRegistry``.
"""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from schemamcp.core.types import OperationKind, OperationMode, PropertyType
from schemamcp.policy.restrictions import Restriction


class WrapConfig(BaseModel):
    """How an entity is wrapped into CRUD tools."""

    tools: bool | None = None
    modes: tuple[OperationMode, ...] | None = None
    hint: str | dict[OperationMode, str] | None = None
    name: str | None = None

    model_config = {"frozen": True}

    def hint_for(self, mode: OperationMode | str) -> str:
        """Hint sentence appended to a tool description, or ``""``."""
        if not self.hint:
            return ""
        if isinstance(self.hint, str):
            return f" Hint: {self.hint}"
        text = self.hint.get(OperationMode(mode))
        return f" Hint: {text}" if text else ""


class AssociationInfo(BaseModel):
    """Navigation element of an entity, with what is needed to join it."""

    name: str
    target: str
    many: bool = False
    composition: bool = False
    # To-one: parent column holding the target key, and that target key
    foreign_key: str | None = None
    target_key: str | None = None
    # To-many: target column pointing back at the parent key
    backlink_foreign_key: str | None = None
    parent_key: str | None = None
    deep_insert: bool = False
    safe_columns: tuple[str, ...] | None = None
    omitted_fields: frozenset[str] = frozenset()

    model_config = {"frozen": True}


class DraftParent(BaseModel):
    """Draft-enabled entity composing a child entity."""

    entity: str
    key: str
    # Child field holding the parent key, e.g. ``up__ID``
    reference: str

    model_config = {"frozen": True}


class ResourceAnnotation(BaseModel):
    """An entity exposed as a resource and, optionally, as CRUD tools."""

    kind: Literal["resource"] = "resource"
    name: str
    description: str
    service_name: str
    target: str
    functionalities: frozenset[str]
    properties: dict[str, PropertyType]
    resource_keys: dict[str, PropertyType]
    foreign_keys: dict[str, str] = Field(default_factory=dict)
    foreign_key_associations: dict[str, str] = Field(default_factory=dict)
    property_hints: dict[str, str] = Field(default_factory=dict)
    omitted_fields: frozenset[str] = frozenset()
    computed_fields: frozenset[str] = frozenset()
    deep_insert_refs: dict[str, str] = Field(default_factory=dict)
    deep_insert_fields: dict[str, dict[str, PropertyType]] = Field(default_factory=dict)
    associations: dict[str, AssociationInfo] = Field(default_factory=dict)
    wrap: WrapConfig = Field(default_factory=WrapConfig)
    draft_enabled: bool = False
    draft_parent: DraftParent | None = None
    restrictions: tuple[Restriction, ...] = ()

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_keys(self) -> "ResourceAnnotation":
        missing = set(self.resource_keys) - set(self.properties)
        if missing:
            raise ValueError(f"Keys not declared as properties: {sorted(missing)}")
        if self.omitted_fields & set(self.resource_keys):
            raise ValueError("Key fields cannot be omitted")
        return self

    @property
    def qualified_name(self) -> str:
        return f"{self.service_name}.{self.target}"

    @property
    def safe_columns(self) -> tuple[str, ...]:
        """``("*",)`` when nothing is omitted, else every non-omitted property."""
        if not self.omitted_fields:
            return ("*",)
        return tuple(p for p in self.properties if p not in self.omitted_fields)

    @property
    def scalar_fields(self) -> list[str]:
        """Fields usable in select, orderby and where."""
        return [
            name
            for name, prop in self.properties.items()
            if not prop.is_navigation and name not in self.omitted_fields
        ]

    @property
    def text_fields(self) -> list[str]:
        return [name for name in self.scalar_fields if self.properties[name].is_text]

    def foreign_key_for(self, association: str) -> str:
        info = self.associations.get(association)
        if info is not None and info.foreign_key:
            return info.foreign_key
        return f"{association}_ID"


class ToolAnnotation(BaseModel):
    """A function or action exposed as a tool; bound when it has entity keys."""

    kind: Literal["tool"] = "tool"
    name: str
    description: str
    service_name: str
    target: str
    parameters: dict[str, PropertyType] | None = None
    entity_key: str | None = None
    operation_kind: OperationKind = OperationKind.ACTION
    key_type_map: dict[str, PropertyType] | None = None
    elicits: tuple[Literal["input", "confirm"], ...] | None = None
    restrictions: tuple[Restriction, ...] = ()

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_bound_keys(self) -> "ToolAnnotation":
        if self.entity_key is not None and not self.key_type_map:
            raise ValueError(f"Bound operation '{self.target}' has no entity keys")
        return self

    @property
    def is_bound(self) -> bool:
        return self.entity_key is not None

    @property
    def qualified_name(self) -> str:
        if self.entity_key:
            return f"{self.service_name}.{self.entity_key}.{self.target}"
        return f"{self.service_name}.{self.target}"


class PromptInput(BaseModel):
    key: str = Field(min_length=1)
    type: str = Field(min_length=1)

    model_config = {"frozen": True}


class PromptTemplate(BaseModel):
    name: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str = ""
    template: str = Field(min_length=1)
    role: Literal["user", "assistant"]
    inputs: tuple[PromptInput, ...] = ()

    model_config = {"frozen": True}


class PromptAnnotation(BaseModel):
    """Prompt templates declared on a service."""

    kind: Literal["prompt"] = "prompt"
    name: str
    description: str
    service_name: str
    prompts: tuple[PromptTemplate, ...]

    model_config = {"frozen": True}

    @property
    def target(self) -> str:
        return self.service_name

    @property
    def qualified_name(self) -> str:
        return self.service_name


Annotation = ResourceAnnotation | ToolAnnotation | PromptAnnotation
