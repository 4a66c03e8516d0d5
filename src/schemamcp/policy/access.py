"""
Access evaluation against restriction lists.

Both checks run when a session admits its tools. A role change only takes
effect for sessions opened afterwards.
"""

from collections.abc import Sequence

from pydantic import BaseModel

from schemamcp.core.context import Principal
from schemamcp.core.types import CrudOperation, OperationMode
from schemamcp.policy.restrictions import Restriction

_MODE_OPERATIONS = {
    OperationMode.QUERY: CrudOperation.READ,
    OperationMode.GET: CrudOperation.READ,
    OperationMode.CREATE: CrudOperation.CREATE,
    OperationMode.UPDATE: CrudOperation.UPDATE,
    OperationMode.DELETE: CrudOperation.DELETE,
}


class WrapAccess(BaseModel):
    """CRUD rights of a caller on one entity. Unset means not granted."""

    can_read: bool | None = None
    can_create: bool | None = None
    can_update: bool | None = None
    can_delete: bool | None = None

    model_config = {"frozen": True}

    @classmethod
    def full(cls) -> "WrapAccess":
        return cls(can_read=True, can_create=True, can_update=True, can_delete=True)

    def allows(self, mode: OperationMode | str) -> bool:
        operation = _MODE_OPERATIONS[OperationMode(mode)]
        return bool(getattr(self, f"can_{operation.value.lower()}"))

    def granted(self) -> dict[str, bool]:
        return self.model_dump(exclude_none=True)


def has_operation_access(principal: Principal, restrictions: Sequence[Restriction]) -> bool:
    """True when unrestricted or the caller holds any listed role."""
    if not restrictions:
        return True
    return any(principal.has_role(r.role) for r in restrictions)


def compute_wrap_access(
    principal: Principal, restrictions: Sequence[Restriction]
) -> WrapAccess:
    """
    Union the operations of every restriction whose role the caller holds.

    A held role without an operation filter grants everything and ends the
    evaluation.
    """
    if not restrictions:
        return WrapAccess.full()

    granted: set[str] = set()
    for restriction in restrictions:
        if not principal.has_role(restriction.role):
            continue
        if restriction.operations is None:
            return WrapAccess.full()
        granted.update(restriction.operations)

    return WrapAccess(
        can_read=True if CrudOperation.READ.value in granted else None,
        can_create=True if CrudOperation.CREATE.value in granted else None,
        can_update=True if CrudOperation.UPDATE.value in granted else None,
        can_delete=True if CrudOperation.DELETE.value in granted else None,
    )
