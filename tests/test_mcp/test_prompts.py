"""
Tests for prompt templates.
"""

import pytest

from schemamcp.core.errors import InvalidInputError
from schemamcp.mcp.prompts import prompt_entries, render_template


class TestRenderTemplate:
    """Tests for placeholder substitution."""

    def test_replace(self):
        assert render_template("Abstract of {{title}} by {{author}}", {"title": "Emma", "author": "Austen"}) == (
            "Abstract of Emma by Austen"
        )

    def test_repeated_placeholder(self):
        assert render_template("{{x}} and {{x}}", {"x": 1}) == "1 and 1"

    def test_unknown_placeholder_kept(self):
        assert render_template("{{title}}", {}) == "{{title}}"


class TestPromptEntry:
    """Tests for prompt definitions and rendering."""

    def test_definition(self, registry):
        (entry,) = prompt_entries(registry.get("CatalogService"))

        assert entry.name == "book-abstract"
        assert entry.definition() == {
            "name": "book-abstract",
            "title": "Book Abstract",
            "description": "Abstract of a book by title",
            "arguments": [{"name": "title", "description": "String", "required": True}],
        }

    def test_render(self, registry):
        (entry,) = prompt_entries(registry.get("CatalogService"))

        result = entry.render({"title": "Jane Eyre"})

        assert result["messages"] == [
            {
                "role": "user",
                "content": {"type": "text", "text": "Give me an abstract of the book Jane Eyre"},
            }
        ]

    def test_missing_input(self, registry):
        (entry,) = prompt_entries(registry.get("CatalogService"))

        with pytest.raises(InvalidInputError, match="Missing prompt input: title"):
            entry.render({})
