"""
Annotation parsing and validation.

Each definition of the model is scanned for recognized tags, which are copied
into a provisional ``AnnotationRecord``. The record is validated for its kind
and handed to the builder. Validation fails fast: the first problem raises an
``AnnotationError`` naming the definition.
"""

from dataclasses import dataclass, field
from typing import Any

from schemamcp.annotations.builder import (
    build_prompt_annotation,
    build_resource_annotation,
    build_tool_annotation,
    entity_key_types,
)
from schemamcp.annotations.constants import (
    DEFAULT_ALL_RESOURCE_OPTIONS,
    ELICIT_MODES,
    MCP_ANNOTATION_KEY,
    MCP_ANNOTATION_MAPPING,
    PROMPT_ROLES,
)
from schemamcp.annotations.registry import AnnotationRegistry
from schemamcp.annotations.structures import Annotation
from schemamcp.core.errors import AnnotationError
from schemamcp.logging import get_logger
from schemamcp.model.reader import DefinitionView, ModelReader

logger = get_logger(__name__)


@dataclass
class AnnotationRecord:
    """Recognized tags of one definition, before validation."""

    definition: DefinitionView
    name: str | None = None
    description: str | None = None
    resource: Any = None
    tool: Any = None
    prompts: Any = None
    wrap: dict[str, Any] = field(default_factory=dict)
    elicit: Any = None
    requires: Any = None
    restrict: Any = None

    @property
    def target(self) -> str:
        return self.definition.name

    @property
    def kind(self) -> str:
        return self.definition.kind


def contains_mcp_annotation(definition: DefinitionView) -> bool:
    return any(MCP_ANNOTATION_KEY in key for key in definition.raw)


def _set_wrap_value(record: AnnotationRecord, path: str, value: Any) -> None:
    parts = path.split(".")[1:]
    if not parts:
        if not isinstance(value, dict):
            raise AnnotationError(record.target, "Wrap configuration must be an object")
        for key, item in value.items():
            _set_wrap_value(record, f"wrap.{key}", item)
        return

    if parts[0] == "hint" and len(parts) == 2:
        hints = record.wrap.setdefault("hint", {})
        if not isinstance(hints, dict):
            raise AnnotationError(record.target, "Conflicting wrap hints")
        hints[parts[1]] = value
        return

    record.wrap[parts[0]] = value


def parse_annotations(definition: DefinitionView) -> AnnotationRecord | None:
    """
    Copy recognized tags of a definition into a record.

    Returns ``None`` when the definition carries no ``@mcp`` tag at all.
    """
    if not contains_mcp_annotation(definition):
        return None

    record = AnnotationRecord(definition=definition)
    for key, value in definition.raw.items():
        logical = MCP_ANNOTATION_MAPPING.get(key)
        if logical is None:
            if key.startswith(MCP_ANNOTATION_KEY):
                logger.debug("Ignoring unrecognized tag", tag=key, target=definition.name)
            continue
        if logical == "wrap" or logical.startswith("wrap."):
            _set_wrap_value(record, logical, value)
        else:
            setattr(record, logical, value)

    return record


def validate_record(record: AnnotationRecord) -> None:
    """Service definitions need nothing else; all others need a name and description."""
    if record.kind == "service":
        return
    validate_access(record)
    if not record.name:
        raise AnnotationError(record.target, "Missing required property 'name'")
    if not record.description:
        raise AnnotationError(record.target, "Missing required property 'description'")


def validate_access(record: AnnotationRecord) -> None:
    """``@requires`` is a role or a list of roles, ``@restrict`` a list of rule objects."""
    requires = record.requires
    if requires is not None and not isinstance(requires, str):
        if not isinstance(requires, list) or not all(isinstance(r, str) for r in requires):
            raise AnnotationError(record.target, "@requires must be a role or a list of roles")
    if record.restrict is None:
        return
    if not isinstance(record.restrict, list):
        raise AnnotationError(record.target, "@restrict must be a list of rules")
    for rule in record.restrict:
        if not isinstance(rule, dict):
            raise AnnotationError(record.target, f"Invalid @restrict rule: {rule!r}")


def validate_resource(record: AnnotationRecord) -> None:
    if isinstance(record.resource, list):
        for option in record.resource:
            if option not in DEFAULT_ALL_RESOURCE_OPTIONS:
                raise AnnotationError(record.target, f"Invalid resource option: {option}")
        return
    if not record.resource:
        raise AnnotationError(record.target, "Missing required flag 'resource'")


def resource_options(record: AnnotationRecord) -> frozenset[str]:
    if isinstance(record.resource, list):
        return frozenset(record.resource)
    return DEFAULT_ALL_RESOURCE_OPTIONS


def validate_tool(record: AnnotationRecord) -> None:
    if not record.tool:
        raise AnnotationError(record.target, "Missing required flag 'tool'")
    validate_elicit(record)


def validate_elicit(record: AnnotationRecord) -> None:
    if record.elicit is None:
        return
    if not isinstance(record.elicit, list) or not record.elicit:
        raise AnnotationError(record.target, "Incomplete elicited user input")
    for mode in record.elicit:
        if mode not in ELICIT_MODES:
            raise AnnotationError(record.target, f"Invalid elicitation mode: {mode}")


def validate_prompts(record: AnnotationRecord) -> None:
    if not isinstance(record.prompts, list) or not record.prompts:
        raise AnnotationError(record.target, "Missing required property 'prompts'")

    for prompt in record.prompts:
        if not isinstance(prompt, dict):
            raise AnnotationError(record.target, "Prompt entries must be objects")
        for prop in ("template", "name", "title"):
            if not prompt.get(prop):
                raise AnnotationError(record.target, f"Missing required property '{prop}'")
        if prompt.get("role") not in PROMPT_ROLES:
            raise AnnotationError(record.target, "Role must be 'user' or 'assistant'")
        inputs = prompt.get("inputs") or []
        if not isinstance(inputs, list):
            raise AnnotationError(record.target, "Prompt inputs must be a list")
        for prompt_input in inputs:
            if not isinstance(prompt_input, dict):
                raise AnnotationError(record.target, "Prompt inputs must be objects with key and type")
            if not prompt_input.get("key") or not prompt_input.get("type"):
                raise AnnotationError(record.target, "Missing key or type on prompt input")


def build_annotation(record: AnnotationRecord) -> Annotation | None:
    """Validate a record for its kind and build the matching annotation."""
    validate_record(record)
    match record.kind:
        case "entity":
            validate_resource(record)
            return build_resource_annotation(record, resource_options(record))
        case "function" | "action":
            validate_tool(record)
            return build_tool_annotation(record)
        case "service":
            if record.prompts is None:
                return None
            validate_prompts(record)
            return build_prompt_annotation(record)
        case _:
            return None


def _parse_bound_operations(
    definition: DefinitionView, registry: AnnotationRegistry
) -> None:
    actions = definition.actions
    if not actions:
        return

    keys = None
    for action in actions.values():
        if action.kind not in ("function", "action"):
            continue
        try:
            record = parse_annotations(action)
            if record is None:
                continue
            validate_record(record)
            validate_tool(record)
            if keys is None:
                keys = entity_key_types(definition)
            annotation = build_tool_annotation(
                record, entity=definition, key_type_map=keys
            )
        except AnnotationError as e:
            registry.record_error(e)
            continue
        registry.add(annotation)


def parse_definitions(reader: ModelReader) -> AnnotationRegistry:
    """
    Build the annotation registry for a whole model.

    A definition whose annotations are invalid is logged and skipped; the
    rest of the model still loads.
    """
    registry = AnnotationRegistry()

    for definition in reader:
        if definition.kind == "entity":
            _parse_bound_operations(definition, registry)

        try:
            record = parse_annotations(definition)
            if record is None:
                continue
            annotation = build_annotation(record)
        except AnnotationError as e:
            registry.record_error(e)
            continue

        if annotation is not None:
            registry.add(annotation)

    logger.info(
        "Annotation model loaded",
        resources=len(registry.resources()),
        tools=len(registry.tools()),
        prompts=len(registry.prompts()),
        skipped=len(registry.errors),
    )
    return registry
