"""
Tests for access evaluation and result omission.
"""

from schemamcp.core.context import Principal
from schemamcp.core.types import OperationMode
from schemamcp.policy import (
    OmissionFilter,
    Restriction,
    WrapAccess,
    compute_wrap_access,
    has_operation_access,
    resolve_restrictions,
)


class TestPrincipal:
    """Tests for synthetic roles."""

    def test_authenticated_user_role(self):
        assert Principal(user_id="alice").has_role("authenticated-user")
        assert not Principal.anonymous().has_role("authenticated-user")

    def test_any_role(self):
        assert Principal.anonymous().has_role("any")

    def test_privileged_holds_everything(self):
        assert Principal.privileged_user().has_any_role("admin", "editor")


class TestHasOperationAccess:
    """Tests for tool admission."""

    def test_unrestricted(self):
        assert has_operation_access(Principal.anonymous(), [])

    def test_held_role_ignores_operations(self):
        restrictions = [Restriction(role="editor", operations=("UPDATE",))]
        assert has_operation_access(Principal(user_id="e", roles=("editor",)), restrictions)

    def test_missing_role(self):
        restrictions = [Restriction(role="admin")]
        assert not has_operation_access(Principal(user_id="u", roles=("viewer",)), restrictions)


class TestComputeWrapAccess:
    """Tests for CRUD rights."""

    def test_read_role(self, principal):
        restrictions = resolve_restrictions([{"grant": ["READ"], "to": ["read-role"]}])

        access = compute_wrap_access(principal, restrictions)

        assert access.granted() == {"can_read": True}
        assert access.allows(OperationMode.QUERY)
        assert access.allows(OperationMode.GET)
        assert not access.allows(OperationMode.CREATE)
        assert not access.allows(OperationMode.UPDATE)
        assert not access.allows(OperationMode.DELETE)

    def test_empty_restrictions_grant_all(self):
        assert compute_wrap_access(Principal.anonymous(), []) == WrapAccess.full()

    def test_unfiltered_role_grants_all(self):
        restrictions = [
            Restriction(role="viewer", operations=("READ",)),
            Restriction(role="admin"),
        ]
        access = compute_wrap_access(Principal(user_id="a", roles=("viewer", "admin")), restrictions)
        assert access == WrapAccess.full()

    def test_union_of_held_roles(self):
        restrictions = resolve_restrictions([
            {"grant": "READ", "to": "viewer"},
            {"grant": "CHANGE", "to": "editor"},
            {"grant": "DELETE", "to": "admin"},
        ])
        access = compute_wrap_access(Principal(user_id="e", roles=("viewer", "editor")), restrictions)
        assert access.granted() == {"can_read": True, "can_update": True}

    def test_no_role_held(self):
        restrictions = [Restriction(role="admin")]
        access = compute_wrap_access(Principal(user_id="u"), restrictions)
        assert access.granted() == {}


class TestOmissionFilter:
    """Tests for removing omitted fields from results."""

    def test_rows(self):
        omission = OmissionFilter({"secret"})
        rows = [{"ID": 1, "secret": "x"}, {"ID": 2, "secret": "y"}]
        assert omission.apply(rows) == [{"ID": 1}, {"ID": 2}]

    def test_nested(self):
        omission = OmissionFilter(set(), {"author": frozenset({"email"})})
        row = {"ID": 1, "author": {"ID": 7, "email": "a@example.com"}}
        assert omission.apply(row) == {"ID": 1, "author": {"ID": 7}}

    def test_scalars_pass_through(self):
        assert OmissionFilter({"secret"}).apply({"count": 3}) == {"count": 3}
        assert OmissionFilter({"secret"}).apply(None) is None
