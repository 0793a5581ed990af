"""Tests for role administration."""

import pytest

from cms_admin.core.exceptions import (
    ForbiddenError, ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from cms_admin.core.permissions import Permissions, all_permission_keys
from cms_admin.models.audit_log import AuditLog
from cms_admin.models.role import Role, RolePermission
from cms_admin.models.user import User, UserStatus
from cms_admin.services.audit_service import AuditActions
from cms_admin.services.role_service import role_service


def test_seeded_roles(roles):
    assert set(roles) == {"Super Admin", "Admin", "Editor", "Viewer"}
    assert roles["Super Admin"].is_super_admin and roles["Super Admin"].is_system
    assert not roles["Editor"].is_system


def test_super_admin_role_reports_whole_catalog(db, roles):
    data = role_service.to_dict(db, roles["Super Admin"])
    assert data["permissions"] == all_permission_keys()


def test_create_role_with_permissions(db, super_admin):
    role = role_service.create_role(
        db, super_admin, "  Reviewer ", "Reads things", [Permissions.BLOG_VIEW, Permissions.BLOG_VIEW],
    )

    assert role.name == "Reviewer"
    assert [p.permission_key for p in role.permissions] == [Permissions.BLOG_VIEW]
    entry = db.query(AuditLog).filter(AuditLog.action_type == AuditActions.ROLE_CREATE).one()
    assert entry.target_id == role.id


def test_create_role_rejects_duplicates_and_unknown_keys(db, super_admin):
    with pytest.raises(ResourceConflictError):
        role_service.create_role(db, super_admin, "editor")
    with pytest.raises(ValidationError):
        role_service.create_role(db, super_admin, "Reporter", permission_keys=["reports.view"])


def test_create_role_requires_permission(db, editor):
    with pytest.raises(ForbiddenError):
        role_service.create_role(db, editor, "Sneaky")


def test_super_admin_role_is_immutable(db, super_admin, roles):
    role_id = roles["Super Admin"].id

    with pytest.raises(ForbiddenError) as exc:
        role_service.update_role(db, super_admin, role_id, name="Root")
    assert exc.value.message == "Super Admin role cannot be modified"
    with pytest.raises(ForbiddenError):
        role_service.set_role_permissions(db, super_admin, role_id, [Permissions.BLOG_VIEW])
    with pytest.raises(ForbiddenError):
        role_service.delete_role(db, super_admin, role_id)

    assert db.get(Role, role_id).name == "Super Admin"
    assert db.query(RolePermission).filter(RolePermission.role_id == role_id).count() == 0


def test_system_role_cannot_be_renamed_or_deleted(db, super_admin, roles):
    with pytest.raises(ForbiddenError):
        role_service.update_role(db, super_admin, roles["Admin"].id, name="Boss")
    with pytest.raises(ForbiddenError):
        role_service.delete_role(db, super_admin, roles["Admin"].id)

    updated = role_service.update_role(db, super_admin, roles["Admin"].id, description="Runs the place")
    assert updated.description == "Runs the place"


def test_update_without_changes_writes_no_audit(db, super_admin, roles):
    role_service.update_role(db, super_admin, roles["Editor"].id, name="Editor")
    assert db.query(AuditLog).filter(AuditLog.action_type == AuditActions.ROLE_UPDATE).count() == 0


def test_set_role_permissions_writes_difference(db, super_admin, roles):
    role = role_service.set_role_permissions(
        db, super_admin, roles["Viewer"].id, [Permissions.BLOG_VIEW, Permissions.AUDIT_VIEW],
    )

    assert sorted(p.permission_key for p in role.permissions) == [Permissions.AUDIT_VIEW, Permissions.BLOG_VIEW]
    assigned = db.query(AuditLog).filter(AuditLog.action_type == AuditActions.PERMISSION_ASSIGN).one()
    revoked = db.query(AuditLog).filter(AuditLog.action_type == AuditActions.PERMISSION_REVOKE).one()
    assert assigned.metadata_json["permissions"] == [Permissions.AUDIT_VIEW]
    assert revoked.metadata_json["permissions"] == [Permissions.JOB_POSTS_VIEW]


def test_delete_role_blocked_while_users_assigned(db, super_admin, make_actor):
    role = role_service.create_role(db, super_admin, "Temp")
    make_actor("Temp", email="temp@example.com")

    with pytest.raises(ResourceConflictError) as exc:
        role_service.delete_role(db, super_admin, role.id)
    assert "1 user(s) assigned" in exc.value.message


def test_delete_role_allowed_with_no_users(db, super_admin, roles):
    role = role_service.create_role(db, super_admin, "Temp", permission_keys=[Permissions.BLOG_VIEW])
    assert role_service.to_dict(db, role)["user_count"] == 0

    role_service.delete_role(db, super_admin, role.id)

    with pytest.raises(ResourceNotFoundError):
        role_service.get_role(db, role.id)
    assert db.query(RolePermission).filter(RolePermission.role_id == role.id).count() == 0


def test_user_count_ignores_soft_deleted_profiles(db, super_admin, editor, roles):
    db.query(User).filter(User.id == editor.id).update({"status": UserStatus.deleted})
    db.commit()

    assert role_service.to_dict(db, roles["Editor"])["user_count"] == 0
    with pytest.raises(ResourceConflictError):
        role_service.delete_role(db, super_admin, roles["Editor"].id)


def test_list_roles_ordered_and_searchable(db):
    assert [r.name for r in role_service.list_roles(db)] == ["Admin", "Editor", "Super Admin", "Viewer"]
    assert [r.name for r in role_service.list_roles(db, search="edit")] == ["Editor"]
