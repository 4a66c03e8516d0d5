"""
Field omission for results.

Omitted fields (``@mcp.omit``) are removed from every row after execution, so
they never leave the server even if a query path selected them.
"""

from collections.abc import Mapping
from typing import Any


class OmissionFilter:
    """
    Drops omitted fields from result rows.

    ``nested`` maps association names to the fields omitted on the
    association's target, applied to expanded sub-rows.
    """

    def __init__(
        self,
        omitted: frozenset[str] | set[str],
        nested: Mapping[str, frozenset[str]] | None = None,
    ) -> None:
        self.omitted = frozenset(omitted)
        self.nested = dict(nested or {})

    def redact_record(self, record: Mapping[str, Any]) -> dict[str, Any]:
        result = {}
        for field, value in record.items():
            if field in self.omitted:
                continue
            nested_omitted = self.nested.get(field)
            if nested_omitted and value is not None:
                value = OmissionFilter(nested_omitted).apply(value)
            result[field] = value
        return result

    def redact_records(self, records: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
        return [self.redact_record(record) for record in records]

    def apply(self, data: Any) -> Any:
        """Filter a row, a list of rows, or pass anything else through."""
        if not self.omitted and not self.nested:
            return data
        if isinstance(data, list):
            return [self.apply(item) for item in data]
        if isinstance(data, Mapping):
            return self.redact_record(data)
        return data
