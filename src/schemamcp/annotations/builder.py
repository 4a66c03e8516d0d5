"""
Construction of annotation objects from validated records.

Element types, keys, foreign keys, hints, omitted and computed fields,
association join data and restrictions are all resolved here so nothing has
to be derived again per request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import ValidationError

from schemamcp.annotations.constants import (
    MCP_DEEP_INSERT_ELEMENT,
    MCP_HINT_ELEMENT,
    MCP_OMIT_ELEMENT,
)
from schemamcp.annotations.structures import (
    AssociationInfo,
    DraftParent,
    PromptAnnotation,
    PromptTemplate,
    ResourceAnnotation,
    ToolAnnotation,
    WrapConfig,
)
from schemamcp.core.errors import AnnotationError, BoundOperationError
from schemamcp.core.types import OperationKind, PropertyType
from schemamcp.logging import get_logger
from schemamcp.model.reader import DefinitionView, ElementDescriptor
from schemamcp.policy.restrictions import resolve_restrictions

if TYPE_CHECKING:
    from schemamcp.annotations.parser import AnnotationRecord

logger = get_logger(__name__)


def entity_key_types(definition: DefinitionView) -> dict[str, PropertyType]:
    """Key map of an entity, used to bind its operations."""
    result = {}
    for name, raw in (definition.raw.get("elements") or {}).items():
        if not raw.get("key"):
            continue
        if not raw.get("type"):
            raise AnnotationError(definition.name, "Invalid key type found for bound operation")
        elem = definition.elements[name]
        if elem.is_navigation:
            continue
        result[name] = elem.type
    return result


def _omitted(elements: dict[str, ElementDescriptor]) -> set[str]:
    return {name for name, elem in elements.items() if elem.tags.get(MCP_OMIT_ELEMENT)}


def _association_info(
    owner: DefinitionView,
    elem: ElementDescriptor,
    elements: dict[str, ElementDescriptor],
    keys: dict[str, PropertyType],
) -> AssociationInfo:
    foreign_key = target_key = backlink_fk = parent_key = None

    if not elem.many and elem.backlink is None:
        if elem.foreign_keys:
            foreign_key, target_key = next(iter(elem.foreign_keys.items()))
        else:
            foreign_key = next(
                (n for n, e in elements.items() if e.foreign_key_for == elem.name),
                f"{elem.name}_ID",
            )
            target_key = foreign_key[len(elem.name) + 1 :] or "ID"
    elif elem.backlink and len(keys) == 1:
        parent_key = next(iter(keys))
        backlink_fk = f"{elem.backlink}_{parent_key}"

    target = owner.reader.get(elem.target) if elem.target else None
    target_omitted: set[str] = set()
    safe_columns = None
    if target is not None:
        target_elements = target.elements
        target_omitted = _omitted(target_elements)
        if target_omitted:
            safe_columns = tuple(
                n
                for n, e in target_elements.items()
                if n not in target_omitted and not e.is_navigation
            )

    return AssociationInfo(
        name=elem.name,
        target=elem.target or "",
        many=elem.many,
        composition=elem.is_composition,
        foreign_key=foreign_key,
        target_key=target_key,
        backlink_foreign_key=backlink_fk,
        parent_key=parent_key,
        deep_insert=bool(elem.tags.get(MCP_DEEP_INSERT_ELEMENT)),
        safe_columns=safe_columns,
        omitted_fields=frozenset(target_omitted),
    )


def _deep_insert_fields(
    owner: DefinitionView, info: AssociationInfo
) -> dict[str, PropertyType]:
    target = owner.reader.get(info.target)
    if target is None:
        return {}
    backlink_fields = {info.backlink_foreign_key} if info.backlink_foreign_key else set()
    return {
        n: e.type
        for n, e in target.elements.items()
        if not e.computed and not e.is_navigation and n not in backlink_fields
    }


def build_resource_annotation(
    record: AnnotationRecord, functionalities: frozenset[str]
) -> ResourceAnnotation:
    definition = record.definition
    elements = definition.elements

    properties = {name: elem.type for name, elem in elements.items()}
    keys = {
        name: elem.type
        for name, elem in elements.items()
        if elem.key and not elem.type.is_association
    }

    omitted = _omitted(elements)
    for key in omitted & set(keys):
        logger.warning("Key fields cannot be omitted, ignoring", field=key, target=definition.name)
    omitted -= set(keys)

    foreign_keys: dict[str, str] = {}
    foreign_key_associations: dict[str, str] = {}
    for name, elem in elements.items():
        if elem.foreign_key_for:
            association = elements.get(elem.foreign_key_for)
            foreign_keys[name] = association.target if association and association.target else ""
            foreign_key_associations[name] = elem.foreign_key_for

    associations = {
        name: _association_info(definition, elem, elements, keys)
        for name, elem in elements.items()
        if elem.is_navigation
    }
    deep_insert_refs = {n: a.target for n, a in associations.items() if a.deep_insert}

    draft_parent = None
    parent = definition.reader.composition_parent(definition.name)
    if parent is not None:
        parent_definition, backlink = parent
        parent_keys = [n for n, e in parent_definition.keys.items() if not e.is_navigation]
        if len(parent_keys) == 1:
            draft_parent = DraftParent(
                entity=parent_definition.name,
                key=parent_keys[0],
                reference=f"{backlink}_{parent_keys[0]}",
            )

    try:
        wrap = WrapConfig(**record.wrap)
        return ResourceAnnotation(
            name=record.name,
            description=record.description,
            service_name=definition.service_name,
            target=definition.target,
            functionalities=functionalities,
            properties=properties,
            resource_keys=keys,
            foreign_keys=foreign_keys,
            foreign_key_associations=foreign_key_associations,
            property_hints={
                n: e.tags[MCP_HINT_ELEMENT]
                for n, e in elements.items()
                if isinstance(e.tags.get(MCP_HINT_ELEMENT), str)
            },
            omitted_fields=frozenset(omitted),
            computed_fields=frozenset(n for n, e in elements.items() if e.computed),
            deep_insert_refs=deep_insert_refs,
            deep_insert_fields={
                n: _deep_insert_fields(definition, associations[n]) for n in deep_insert_refs
            },
            associations=associations,
            wrap=wrap,
            draft_enabled=definition.is_draft_enabled,
            draft_parent=draft_parent,
            restrictions=tuple(resolve_restrictions(record.restrict, record.requires)),
        )
    except ValidationError as e:
        raise AnnotationError(definition.name, f"Malformed annotation: {e.errors()[0]['msg']}") from e


def build_tool_annotation(
    record: AnnotationRecord,
    *,
    entity: DefinitionView | None = None,
    key_type_map: dict[str, PropertyType] | None = None,
) -> ToolAnnotation:
    """
    Build a tool annotation; passing ``entity`` makes it a bound operation.

    Raises:
        BoundOperationError: ``entity`` was given but it declares no keys
    """
    definition = record.definition
    if entity is not None and not key_type_map:
        raise BoundOperationError(
            f"Bound operation '{definition.name}' requires the keys of '{entity.name}'"
        )

    params = definition.params
    if entity is not None:
        service_name, target = entity.service_name, definition.name.rsplit(".", 1)[1]
    else:
        service_name, target = definition.service_name, definition.target

    try:
        return ToolAnnotation(
            name=record.name,
            description=record.description,
            service_name=service_name,
            target=target,
            parameters={n: e.type for n, e in params.items()} if params else None,
            entity_key=entity.target if entity is not None else None,
            operation_kind=OperationKind(definition.kind),
            key_type_map=key_type_map,
            elicits=tuple(record.elicit) if record.elicit else None,
            restrictions=tuple(resolve_restrictions(record.restrict, record.requires)),
        )
    except ValidationError as e:
        raise AnnotationError(definition.name, f"Malformed annotation: {e.errors()[0]['msg']}") from e


def build_prompt_annotation(record: AnnotationRecord) -> PromptAnnotation:
    definition = record.definition
    try:
        return PromptAnnotation(
            name=record.name or definition.name,
            description=record.description or "",
            service_name=definition.name,
            prompts=tuple(PromptTemplate(**prompt) for prompt in record.prompts),
        )
    except ValidationError as e:
        raise AnnotationError(definition.name, f"Malformed prompt: {e.errors()[0]['msg']}") from e
