"""
Registry of the loaded annotation model.
"""

from collections.abc import Iterator

from schemamcp.annotations.structures import (
    Annotation,
    PromptAnnotation,
    ResourceAnnotation,
    ToolAnnotation,
)
from schemamcp.core.errors import AnnotationError
from schemamcp.logging import get_logger

logger = get_logger(__name__)


class AnnotationRegistry:
    """
    Annotations of one schema load, keyed by qualified name.

    Filled once by ``parse_definitions`` and then only read; the server and
    every tool receive the same instance.

    Example:
        registry = parse_definitions(ModelReader.from_file("csn.json"))
        books = registry.get_resource("Books")
    """

    def __init__(self) -> None:
        self._annotations: dict[str, Annotation] = {}
        self.errors: list[AnnotationError] = []

    def add(self, annotation: Annotation) -> None:
        key = annotation.qualified_name
        if key in self._annotations:
            logger.warning("Duplicate annotation replaced", target=key)
        self._annotations[key] = annotation

    def record_error(self, error: AnnotationError) -> None:
        logger.error("Skipping invalid annotation", target=error.target, reason=error.message)
        self.errors.append(error)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(self._annotations.values())

    def __len__(self) -> int:
        return len(self._annotations)

    def __contains__(self, name: object) -> bool:
        return name in self._annotations

    def get(self, name: str) -> Annotation | None:
        """Look up by qualified name, falling back to the bare target name."""
        found = self._annotations.get(name)
        if found is not None:
            return found
        for annotation in self._annotations.values():
            if annotation.target == name:
                return annotation
        return None

    def get_resource(self, name: str) -> ResourceAnnotation | None:
        found = self.get(name)
        if isinstance(found, ResourceAnnotation):
            return found
        return next((r for r in self.resources() if r.target == name), None)

    def resources(self) -> list[ResourceAnnotation]:
        return [a for a in self if isinstance(a, ResourceAnnotation)]

    def tools(self) -> list[ToolAnnotation]:
        return [a for a in self if isinstance(a, ToolAnnotation)]

    def prompts(self) -> list[PromptAnnotation]:
        return [a for a in self if isinstance(a, PromptAnnotation)]
