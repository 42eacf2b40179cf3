"""Unit tests for the role model."""

from uuid import uuid4

import pytest

from core.exceptions import ValidationError
from domain.entities.workspace import MemberPermissions, WorkspaceRole
from domain.policies.roles import (
    can_assign_role,
    compare_roles,
    default_permissions,
    ensure_invariants,
    normalize_role,
)
from tests.unit.conftest import make_member, make_workspace


class TestNormalizeRole:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("owner", WorkspaceRole.OWNER),
            ("Admin", WorkspaceRole.ADMIN),
            ("  MEMBER ", WorkspaceRole.MEMBER),
            ("viewer", WorkspaceRole.MEMBER),
            ("", WorkspaceRole.MEMBER),
            (None, WorkspaceRole.MEMBER),
            (42, WorkspaceRole.MEMBER),
        ],
    )
    def test_maps_any_value_to_a_valid_role(self, raw, expected):
        assert normalize_role(raw) == expected

    def test_passes_roles_through(self):
        assert normalize_role(WorkspaceRole.ADMIN) is WorkspaceRole.ADMIN


class TestCompareRoles:
    def test_rank_order(self):
        assert compare_roles(WorkspaceRole.OWNER, WorkspaceRole.ADMIN) > 0
        assert compare_roles(WorkspaceRole.ADMIN, WorkspaceRole.MEMBER) > 0
        assert compare_roles(WorkspaceRole.MEMBER, WorkspaceRole.OWNER) < 0
        assert compare_roles(WorkspaceRole.ADMIN, WorkspaceRole.ADMIN) == 0


class TestDefaultPermissions:
    def test_owner_holds_every_flag(self):
        assert default_permissions(WorkspaceRole.OWNER) == MemberPermissions.all_granted()

    def test_admin_lacks_manage_roles_only(self):
        perms = default_permissions(WorkspaceRole.ADMIN).as_dict()
        assert perms.pop("manage_roles") is False
        assert all(perms.values())

    def test_member_has_no_overrides(self):
        assert not any(default_permissions(WorkspaceRole.MEMBER).as_dict().values())


class TestCanAssignRole:
    def test_owner_may_assign_anything(self):
        for role in WorkspaceRole:
            assert can_assign_role(WorkspaceRole.OWNER, role)

    def test_admin_cannot_grant_admin_or_owner(self):
        assert not can_assign_role(WorkspaceRole.ADMIN, WorkspaceRole.ADMIN)
        assert not can_assign_role(WorkspaceRole.ADMIN, WorkspaceRole.OWNER)

    def test_member_is_always_assignable(self):
        assert can_assign_role(WorkspaceRole.ADMIN, WorkspaceRole.MEMBER)
        assert can_assign_role(WorkspaceRole.MEMBER, WorkspaceRole.MEMBER)


class TestEnsureInvariants:
    def test_consistent_workspace_passes(self):
        ensure_invariants(make_workspace(uuid4(), make_member(uuid4(), WorkspaceRole.ADMIN)))

    def test_second_owner_is_rejected(self):
        workspace = make_workspace(uuid4(), make_member(uuid4(), WorkspaceRole.OWNER))
        with pytest.raises(ValidationError) as exc_info:
            ensure_invariants(workspace)
        assert "expected exactly one owner" in exc_info.value.details["violations"][0]

    def test_missing_owner_member_is_rejected(self):
        workspace = make_workspace(uuid4())
        workspace.members.clear()
        with pytest.raises(ValidationError):
            ensure_invariants(workspace)

    def test_owner_with_reduced_permissions_is_rejected(self):
        owner_id = uuid4()
        workspace = make_workspace(owner_id)
        workspace.get_member(owner_id).permissions = MemberPermissions()
        with pytest.raises(ValidationError) as exc_info:
            ensure_invariants(workspace)
        assert "workspace owner lacks the full permission set" in exc_info.value.details["violations"]

    def test_duplicate_member_is_rejected(self):
        user = uuid4()
        workspace = make_workspace(uuid4(), make_member(user), make_member(user))
        with pytest.raises(ValidationError):
            ensure_invariants(workspace)
