"""
Typed access to a CSN-style schema model.

The model is a JSON document of the form ``{"definitions": {name: definition}}``
where each definition has a ``kind`` (service, entity, function, action, type),
optional ``elements``, ``actions`` and ``params`` and any number of ``@``
metadata tags. The reader resolves element types and exposes them as
``ElementDescriptor`` objects; it knows nothing about the ``@mcp`` annotations
built on top of it.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from functools import cached_property
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from schemamcp.core.errors import (
    CyclicTypeReferenceError,
    ModelLoadError,
    UnresolvableTypeReferenceError,
)
from schemamcp.core.types import ElementKind, PropertyType

DRAFT_ENABLED_TAG = "@odata.draft.enabled"
FOREIGN_KEY_TAG = "@odata.foreignKey4"
COMPUTED_TAG = "@Core.Computed"
COMPOSITION_TYPE = "cds.Composition"


def _backlink(name: str, element: Mapping[str, Any]) -> str | None:
    """Target element named by an ``on`` condition of the form ``name.x = $self``."""
    on = element.get("on")
    if isinstance(on, list) and on and isinstance(on[0], Mapping):
        ref = on[0].get("ref") or []
        if len(ref) == 2 and ref[0] == name:
            return str(ref[1])
    return None


def split_definition_name(name: str) -> tuple[str, str]:
    """
    Split a qualified name into ``(service, target)``.

    The last segment is the target and everything before it the service:
    ``"CatalogService.Books"`` gives ``("CatalogService", "Books")``. A name
    without dots is a service with an empty target.
    """
    if "." not in name:
        return name, ""
    service, _, target = name.rpartition(".")
    return service, target


class ElementDescriptor(BaseModel):
    """A resolved element (entity field or operation parameter)."""

    name: str
    type: PropertyType
    key: bool = False
    target: str | None = None
    computed: bool = False
    foreign_key_for: str | None = None
    many: bool = False
    backlink: str | None = None
    foreign_keys: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def is_navigation(self) -> bool:
        return self.type.is_navigation

    @property
    def is_composition(self) -> bool:
        return self.type.kind == ElementKind.COMPOSITION


class DefinitionView:
    """Read-only view over one definition of the model."""

    def __init__(self, reader: ModelReader, name: str, raw: Mapping[str, Any]) -> None:
        self.reader = reader
        self.name = name
        self.raw = raw

    def __repr__(self) -> str:
        return f"DefinitionView({self.name!r}, kind={self.kind!r})"

    @property
    def kind(self) -> str:
        return str(self.raw.get("kind", ""))

    @property
    def service_name(self) -> str:
        return split_definition_name(self.name)[0]

    @property
    def target(self) -> str:
        return split_definition_name(self.name)[1]

    @property
    def tags(self) -> dict[str, Any]:
        return {k: v for k, v in self.raw.items() if k.startswith("@")}

    @property
    def is_draft_enabled(self) -> bool:
        return bool(self.raw.get(DRAFT_ENABLED_TAG))

    @cached_property
    def elements(self) -> dict[str, ElementDescriptor]:
        return {
            elem_name: self.reader.describe_element(self.name, elem_name, elem)
            for elem_name, elem in (self.raw.get("elements") or {}).items()
        }

    @cached_property
    def params(self) -> dict[str, ElementDescriptor]:
        return {
            param_name: self.reader.describe_element(self.name, param_name, param)
            for param_name, param in (self.raw.get("params") or {}).items()
        }

    @property
    def actions(self) -> dict[str, DefinitionView]:
        return {
            action_name: DefinitionView(self.reader, f"{self.name}.{action_name}", action)
            for action_name, action in (self.raw.get("actions") or {}).items()
        }

    @property
    def keys(self) -> dict[str, ElementDescriptor]:
        return {name: elem for name, elem in self.elements.items() if elem.key}


class ModelReader:
    """
    Reader over a schema model.

    Example:
        reader = ModelReader.from_file("gen/csn.json")
        books = reader.get("CatalogService.Books")
        books.elements["ID"].type.base  # "Integer"
    """

    def __init__(self, model: Mapping[str, Any]) -> None:
        definitions = model.get("definitions") if isinstance(model, Mapping) else None
        if not isinstance(definitions, Mapping):
            raise ModelLoadError("Cannot parse model without valid definitions")
        self.definitions: Mapping[str, Mapping[str, Any]] = definitions

    @classmethod
    def from_file(cls, path: str | Path) -> ModelReader:
        try:
            with open(path, encoding="utf-8") as f:
                model = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ModelLoadError(f"Cannot read model from {path}: {e}") from e
        return cls(model)

    def __iter__(self) -> Iterator[DefinitionView]:
        for name, raw in self.definitions.items():
            yield DefinitionView(self, name, raw)

    def __contains__(self, name: object) -> bool:
        return name in self.definitions

    def get(self, name: str) -> DefinitionView | None:
        raw = self.definitions.get(name)
        return DefinitionView(self, name, raw) if raw is not None else None

    def entities(self) -> list[DefinitionView]:
        return [d for d in self if d.kind == "entity"]

    def services(self) -> list[str]:
        return sorted(d.name for d in self if d.kind == "service")

    # --- Element typing ---

    def describe_element(
        self, owner: str, name: str, element: Mapping[str, Any]
    ) -> ElementDescriptor:
        prop_type = self.resolve_type(element, owner=owner)
        backlink = _backlink(name, element)
        cardinality = element.get("cardinality") or {}
        many = cardinality.get("max") == "*"
        return ElementDescriptor(
            name=name,
            type=prop_type,
            key=bool(element.get("key")),
            target=element.get("target"),
            computed=bool(element.get(COMPUTED_TAG) or element.get("virtual")),
            foreign_key_for=element.get(FOREIGN_KEY_TAG),
            many=many,
            backlink=backlink,
            foreign_keys={
                k["$generatedFieldName"]: ".".join(k.get("ref") or [])
                for k in element.get("keys") or []
                if isinstance(k, Mapping) and "$generatedFieldName" in k
            },
            tags={k: v for k, v in element.items() if k.startswith("@")},
        )

    def resolve_type(self, element: Mapping[str, Any], *, owner: str) -> PropertyType:
        """
        Resolve an element's declared type to a literal scalar type.

        Follows ``{"ref": [definition, element, ...]}`` references and named
        type definitions until a literal is reached. Array elements (carrying
        ``items``) resolve the item type and are flagged as arrays.
        """
        items = element.get("items")
        if isinstance(items, Mapping):
            return PropertyType.parse(self._resolve_type_name(items, owner), is_array=True)
        return PropertyType.parse(self._resolve_type_name(element, owner))

    def _resolve_type_name(self, element: Mapping[str, Any], owner: str) -> str:
        visited: list[str] = []
        current: Mapping[str, Any] = element
        while True:
            raw = current.get("type")
            if isinstance(raw, Mapping) and isinstance(raw.get("ref"), list):
                ref = [str(part) for part in raw["ref"]]
                node = ":".join(ref)
                if node in visited:
                    raise CyclicTypeReferenceError(owner, visited + [node])
                visited.append(node)
                found = self._lookup_ref(ref)
                if found is None:
                    raise UnresolvableTypeReferenceError(owner, raw)
                current = found
                continue
            if isinstance(raw, str):
                if raw.startswith("cds."):
                    return raw
                named = self.definitions.get(raw)
                if named is None or named.get("kind") != "type":
                    return raw
                if raw in visited:
                    raise CyclicTypeReferenceError(owner, visited + [raw])
                visited.append(raw)
                current = named
                continue
            raise UnresolvableTypeReferenceError(owner, raw)

    def _lookup_ref(self, ref: list[str]) -> Mapping[str, Any] | None:
        node = self.definitions.get(ref[0])
        for part in ref[1:]:
            if node is None:
                return None
            node = (node.get("elements") or {}).get(part)
        return node

    # --- Draft structure ---

    def composition_parent(self, name: str) -> tuple[DefinitionView, str] | None:
        """
        Find the draft-enabled entity that composes ``name``.

        Returns the parent definition and the name of the child's element
        pointing back at it (``up_`` for composition-of-aspect children).
        Only raw element tags are read; no element type is resolved.
        """
        for candidate in self.entities():
            if not candidate.is_draft_enabled:
                continue
            for elem_name, elem in (candidate.raw.get("elements") or {}).items():
                if not isinstance(elem, Mapping) or elem.get("target") != name:
                    continue
                if elem.get("type") != COMPOSITION_TYPE:
                    continue
                return candidate, _backlink(elem_name, elem) or "up_"
        return None
