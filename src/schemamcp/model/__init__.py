"""Schema model access."""

from schemamcp.model.reader import (
    DefinitionView,
    ElementDescriptor,
    ModelReader,
    split_definition_name,
)

__all__ = [
    "DefinitionView",
    "ElementDescriptor",
    "ModelReader",
    "split_definition_name",
]
