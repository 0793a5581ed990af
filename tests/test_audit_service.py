"""Tests for the audit trail."""

from datetime import timedelta

import pytest

from cms_admin.core.clock import utcnow
from cms_admin.core.exceptions import ForbiddenError, ValidationError
from cms_admin.models.audit_log import AuditLog
from cms_admin.services.audit_service import AuditActions, audit_service


def _log(db, actor_id, action, target_type="user", target_id=None, age_days=0):
    entry = audit_service.log(db, actor_id, action, target_type, target_id, {"n": 1})
    if age_days:
        entry.created_at = utcnow() - timedelta(days=age_days)
        db.commit()
    return entry


def test_log_records_entry(db, super_admin):
    entry = audit_service.log(
        db, super_admin.id, AuditActions.ROLE_CREATE, "role", "r-1", {"name": "X"}, ip_address="10.0.0.1",
    )

    assert entry.id
    stored = db.get(AuditLog, entry.id)
    assert stored.actor.email == super_admin.email
    assert stored.metadata_json == {"name": "X"}
    assert stored.ip_address == "10.0.0.1"


def test_query_logs_filters_and_paginates(db, super_admin, editor):
    for _ in range(3):
        _log(db, super_admin.id, AuditActions.USER_UPDATE)
    _log(db, editor.id, AuditActions.LOGIN_SUCCESS)
    _log(db, editor.id, AuditActions.ROLE_UPDATE, target_type="role")

    by_actor = audit_service.query_logs(db, actor_id=editor.id)
    assert by_actor["total"] == 2

    by_action = audit_service.query_logs(db, action_type=AuditActions.USER_UPDATE, page=2, limit=2)
    assert by_action["total"] == 3
    assert by_action["total_pages"] == 2
    assert len(by_action["logs"]) == 1

    by_target = audit_service.query_logs(db, target_type="role")
    assert [log.action_type for log in by_target["logs"]] == [AuditActions.ROLE_UPDATE]


def test_query_logs_date_range(db, super_admin):
    _log(db, super_admin.id, AuditActions.USER_UPDATE, age_days=10)
    _log(db, super_admin.id, AuditActions.USER_DELETE)

    recent = audit_service.query_logs(db, start_date=utcnow() - timedelta(days=1))
    assert [log.action_type for log in recent["logs"]] == [AuditActions.USER_DELETE]


def test_logs_for_target(db, super_admin, editor):
    _log(db, super_admin.id, AuditActions.USER_UPDATE, target_id=editor.id)
    _log(db, super_admin.id, AuditActions.USER_STATUS_CHANGE, target_id=editor.id)
    _log(db, super_admin.id, AuditActions.USER_UPDATE, target_id=super_admin.id)

    logs = audit_service.logs_for_target(db, "user", editor.id)
    assert {log.action_type for log in logs} == {AuditActions.USER_UPDATE, AuditActions.USER_STATUS_CHANGE}


def test_stats(db, super_admin):
    for _ in range(3):
        _log(db, super_admin.id, AuditActions.LOGIN_SUCCESS)
    _log(db, super_admin.id, AuditActions.USER_UPDATE)
    _log(db, super_admin.id, AuditActions.USER_UPDATE, age_days=30)

    stats = audit_service.stats(db)

    assert stats["total_logs"] == 5
    assert stats["week_logs"] == 4
    assert stats["top_actions"][0] == {"action_type": AuditActions.LOGIN_SUCCESS, "count": 3}


def test_delete_old_logs_is_super_admin_only(db, super_admin, make_actor):
    admin = make_actor("Admin", email="admin2@example.com")
    _log(db, super_admin.id, AuditActions.USER_UPDATE, age_days=120)
    _log(db, super_admin.id, AuditActions.USER_UPDATE, age_days=5)

    with pytest.raises(ForbiddenError) as exc:
        audit_service.delete_old_logs(db, admin, 90)
    assert exc.value.message == "Only Super Admin can delete audit logs"
    with pytest.raises(ValidationError):
        audit_service.delete_old_logs(db, super_admin, 0)

    deleted = audit_service.delete_old_logs(db, super_admin, 90)

    assert deleted == 1
    remaining = [log.action_type for log in db.query(AuditLog).all()]
    assert sorted(remaining) == [AuditActions.AUDIT_CLEANUP, AuditActions.USER_UPDATE]
