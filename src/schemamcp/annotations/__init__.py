"""
Annotation model: parsing, validation and the immutable structures built from it.
"""

from schemamcp.annotations.parser import (
    AnnotationRecord,
    build_annotation,
    parse_annotations,
    parse_definitions,
    validate_prompts,
    validate_record,
    validate_resource,
    validate_tool,
)
from schemamcp.annotations.registry import AnnotationRegistry
from schemamcp.annotations.structures import (
    AssociationInfo,
    PromptAnnotation,
    PromptTemplate,
    ResourceAnnotation,
    ToolAnnotation,
    WrapConfig,
)

__all__ = [
    "AnnotationRecord",
    "AnnotationRegistry",
    "AssociationInfo",
    "PromptAnnotation",
    "PromptTemplate",
    "ResourceAnnotation",
    "ToolAnnotation",
    "WrapConfig",
    "build_annotation",
    "parse_annotations",
    "parse_definitions",
    "validate_prompts",
    "validate_record",
    "validate_resource",
    "validate_tool",
]
