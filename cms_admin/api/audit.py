"""Audit log API router."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cms_admin.core.config import settings
from cms_admin.core.permissions import Permissions
from cms_admin.core.security import RequirePermission, require_super_admin_actor
from cms_admin.db.session import get_db
from cms_admin.schemas.schemas import (
    ActionResponse, Actor, AuditCleanupResult, AuditLogOut, AuditStats, Page,
)
from cms_admin.services.audit_service import audit_service

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=ActionResponse[Page[AuditLogOut]])
async def get_audit_logs(
    action_type: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    target_type: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.AUDIT_VIEW)),
):
    """Query audit logs, newest first."""
    result = audit_service.query_logs(
        db, action_type, actor_id, target_type, start_date, end_date, page, limit,
    )
    return ActionResponse(
        success=True,
        data=Page[AuditLogOut](
            items=[AuditLogOut.model_validate(log) for log in result["logs"]],
            total=result["total"],
            page=result["page"],
            limit=result["limit"],
            total_pages=result["total_pages"],
        ),
    )


@router.get("/stats", response_model=ActionResponse[AuditStats])
async def get_audit_stats(
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.AUDIT_VIEW)),
):
    return ActionResponse(success=True, data=AuditStats(**audit_service.stats(db)))


@router.delete("/cleanup", response_model=ActionResponse[AuditCleanupResult])
async def cleanup_audit_logs(
    days_to_keep: int = Query(settings.AUDIT_RETENTION_DAYS, ge=1),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_super_admin_actor),
):
    """Delete entries older than ``days_to_keep`` (Super Admin only)."""
    deleted = audit_service.delete_old_logs(db, actor, days_to_keep)
    return ActionResponse(
        success=True,
        data=AuditCleanupResult(deleted_count=deleted),
        message=f"Deleted {deleted} audit log(s)",
    )
