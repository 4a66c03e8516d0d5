"""
Normalization of ``@requires`` / ``@restrict`` declarations.

Declarations come in several shapes: a grant may be one keyword or a list,
``to`` may be one role, a list or absent. They are flattened into an ordered
list of ``Restriction(role, operations)`` pairs.
"""

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from schemamcp.core.context import AUTHENTICATED_USER
from schemamcp.core.types import ALL_OPERATIONS, CrudOperation

# Composite grant keywords and what they stand for
GRANT_EXPANSIONS: dict[str, tuple[str, ...]] = {
    "CHANGE": (CrudOperation.UPDATE.value,),
    "WRITE": (
        CrudOperation.CREATE.value,
        CrudOperation.UPDATE.value,
        CrudOperation.DELETE.value,
    ),
    "*": ALL_OPERATIONS,
}


class Restriction(BaseModel):
    """
    One access rule: a role and what it may do.

    ``operations`` of ``None`` means every operation is allowed for the role.
    """

    role: str
    operations: tuple[str, ...] | None = None

    model_config = {"frozen": True}

    def allows(self, operation: str) -> bool:
        return self.operations is None or operation in self.operations


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def map_grant(grant: str | Iterable[str] | None) -> tuple[str, ...]:
    """
    Expand a grant into concrete operations.

    ``CHANGE`` means UPDATE, ``WRITE`` means CREATE/UPDATE/DELETE and ``*``
    or an empty grant mean all four. Other keywords (``READ``, action names)
    are kept as declared. Duplicates keep their first position.
    """
    grants = _as_list(grant)
    if not grants:
        return ALL_OPERATIONS

    result: list[str] = []
    for keyword in grants:
        expanded = GRANT_EXPANSIONS.get(keyword) if keyword else ALL_OPERATIONS
        for operation in expanded or (keyword,):
            if operation not in result:
                result.append(operation)
    return tuple(result)


def resolve_restrictions(
    restrict: list[dict[str, Any]] | None,
    requires: str | list[str] | None = None,
) -> list[Restriction]:
    """
    Build the restriction list for a definition.

    Required roles come first as unrestricted entries, then one entry per
    role of each ``@restrict`` rule in declaration order. A rule without
    ``to`` applies to every authenticated user. No declarations at all give
    an empty list, which means no access control.

    Example:
        resolve_restrictions([{"grant": "CHANGE", "to": "editor"}])
        # [Restriction(role="editor", operations=("UPDATE",))]
    """
    if not restrict and not requires:
        return []

    result = [Restriction(role=role) for role in _as_list(requires) if role]

    for rule in restrict or []:
        operations = map_grant(rule.get("grant"))
        roles = _as_list(rule.get("to")) or [AUTHENTICATED_USER]
        result.extend(Restriction(role=role, operations=operations) for role in roles)

    return result
