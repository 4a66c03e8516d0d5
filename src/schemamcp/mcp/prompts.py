"""
Prompt templates declared with ``@mcp.prompts`` on a service.
"""

from collections.abc import Mapping
from typing import Any

from schemamcp.annotations.structures import PromptAnnotation, PromptTemplate
from schemamcp.core.errors import InvalidInputError
from schemamcp.logging import get_logger

logger = get_logger(__name__)


def render_template(template: str, arguments: Mapping[str, Any]) -> str:
    """Replace every ``{{key}}`` with the string form of its argument."""
    text = template
    for key, value in arguments.items():
        text = text.replace(f"{{{{{key}}}}}", str(value))
    return text


class PromptEntry:
    """One prompt template with the service that declared it."""

    def __init__(self, annotation: PromptAnnotation, template: PromptTemplate) -> None:
        self.annotation = annotation
        self.template = template

    @property
    def name(self) -> str:
        return self.template.name

    def definition(self) -> dict[str, Any]:
        return {
            "name": self.template.name,
            "title": self.template.title,
            "description": self.template.description,
            "arguments": [
                {"name": i.key, "description": i.type, "required": True}
                for i in self.template.inputs
            ],
        }

    def render(self, arguments: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """
        Fill the template and return a ``GetPromptResult`` body.

        Raises:
            InvalidInputError: A declared input was not given
        """
        arguments = dict(arguments or {})
        missing = [i.key for i in self.template.inputs if arguments.get(i.key) is None]
        if missing:
            raise InvalidInputError(
                [{"loc": [key], "msg": "Field required", "type": "missing"} for key in missing],
                message=f"Missing prompt input: {', '.join(missing)}",
            )

        logger.debug("Rendering prompt", prompt=self.template.name, service=self.annotation.service_name)
        return {
            "description": self.template.description,
            "messages": [
                {
                    "role": self.template.role,
                    "content": {
                        "type": "text",
                        "text": render_template(self.template.template, arguments),
                    },
                }
            ],
        }


def prompt_entries(annotation: PromptAnnotation) -> list[PromptEntry]:
    return [PromptEntry(annotation, template) for template in annotation.prompts]
