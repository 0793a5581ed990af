"""Audit service: append-only audit trail for privileged mutations."""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cms_admin.core.clock import utcnow
from cms_admin.core.exceptions import ValidationError
from cms_admin.models.audit_log import AuditLog
from cms_admin.schemas.schemas import Actor
from cms_admin.services.authorization_service import authorization_service

logger = logging.getLogger("cms_admin")


class AuditActions:
    """Audit action types."""

    # Authentication
    LOGIN_SUCCESS = "auth.login.success"
    LOGIN_FAILURE = "auth.login.failure"
    LOGOUT = "auth.logout"
    PASSWORD_RESET_REQUEST = "auth.password_reset_request"
    PASSWORD_RESET = "auth.password_reset"

    # Users
    USER_INVITE = "user.invite"
    USER_INVITATION_ACCEPTED = "user.invitation_accepted"
    USER_CREATE = "user.create"
    USER_UPDATE = "user.update"
    USER_DELETE = "user.delete"
    USER_STATUS_CHANGE = "user.status_change"
    USER_ACTIVATED = "user.activated"

    # Roles
    ROLE_CREATE = "role.create"
    ROLE_UPDATE = "role.update"
    ROLE_DELETE = "role.delete"

    # Permissions
    PERMISSION_SYNC = "permission.sync"
    PERMISSION_ASSIGN = "permission.assign"
    PERMISSION_REVOKE = "permission.revoke"

    # Audit
    AUDIT_CLEANUP = "audit.cleanup"

    # Settings
    ALLOWED_DOMAIN_CREATED = "allowed_domain.created"
    ALLOWED_DOMAIN_UPDATED = "allowed_domain.updated"
    ALLOWED_DOMAIN_DELETED = "allowed_domain.deleted"

    # Blog
    BLOG_CATEGORY_CREATED = "blog.category.created"
    BLOG_CATEGORY_UPDATED = "blog.category.updated"
    BLOG_CATEGORY_DELETED = "blog.category.deleted"
    BLOG_CONTRIBUTOR_CREATED = "blog.contributor.created"
    BLOG_CONTRIBUTOR_UPDATED = "blog.contributor.updated"
    BLOG_CONTRIBUTOR_DELETED = "blog.contributor.deleted"
    BLOG_POST_CREATED = "blog.post.created"
    BLOG_POST_UPDATED = "blog.post.updated"
    BLOG_POST_DELETED = "blog.post.deleted"
    BLOG_POST_PUBLISHED = "blog.post.published"
    BLOG_POST_UNPUBLISHED = "blog.post.unpublished"

    # Job posts
    JOB_CATEGORY_CREATED = "job_category.created"
    JOB_CATEGORY_UPDATED = "job_category.updated"
    JOB_CATEGORY_DELETED = "job_category.deleted"
    JOB_POST_CREATED = "job_post.created"
    JOB_POST_UPDATED = "job_post.updated"
    JOB_POST_DELETED = "job_post.deleted"
    JOB_POST_PUBLISHED = "job_post.published"
    JOB_POST_UNPUBLISHED = "job_post.unpublished"


class AuditService:
    """Records immutable audit log entries and serves filtered reads."""

    @staticmethod
    def log(
        db: Session,
        actor_id: Optional[str],
        action_type: str,
        target_type: str,
        target_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Write a single audit log record.

        Commits immediately so the entry survives a later failure of the
        caller. A failed write is logged and returns None: auditing never
        breaks the operation being audited.
        """
        entry = AuditLog(
            actor_id=actor_id,
            action_type=action_type,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            metadata_json=metadata or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to write audit log %s for %s", action_type, target_type)
            return None
        return entry

    @staticmethod
    def log_from_request(
        db: Session,
        request: Optional[Request],
        actor_id: Optional[str],
        action_type: str,
        target_type: str,
        target_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """Write audit log extracting IP and user-agent from the request."""
        ip = None
        ua = None
        if request is not None:
            ip = request.client.host if request.client else None
            ua = request.headers.get("user-agent", "")[:500]
        return AuditService.log(
            db=db,
            actor_id=actor_id,
            action_type=action_type,
            target_type=target_type,
            target_id=target_id,
            metadata=metadata,
            ip_address=ip,
            user_agent=ua,
        )

    @staticmethod
    def query_logs(
        db: Session,
        action_type: Optional[str] = None,
        actor_id: Optional[str] = None,
        target_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Dict[str, Any]:
        """Query audit logs with filters and pagination, newest first."""
        query = db.query(AuditLog)

        if action_type:
            query = query.filter(AuditLog.action_type == action_type)
        if actor_id:
            query = query.filter(AuditLog.actor_id == actor_id)
        if target_type:
            query = query.filter(AuditLog.target_type == target_type)
        if start_date:
            query = query.filter(AuditLog.created_at >= start_date)
        if end_date:
            query = query.filter(AuditLog.created_at <= end_date)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return {
            "logs": logs,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        }

    @staticmethod
    def logs_for_target(db: Session, target_type: str, target_id: str, limit: int = 100):
        """Most recent entries about one user, role, domain..."""
        return (
            db.query(AuditLog)
            .filter(AuditLog.target_type == target_type, AuditLog.target_id == str(target_id))
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def stats(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_ago = now - timedelta(days=7)

        total = db.query(func.count(AuditLog.id)).scalar() or 0
        today = db.query(func.count(AuditLog.id)).filter(AuditLog.created_at >= start_of_day).scalar() or 0
        week = db.query(func.count(AuditLog.id)).filter(AuditLog.created_at >= week_ago).scalar() or 0

        counted = func.count(AuditLog.id).label("count")
        top = (
            db.query(AuditLog.action_type, counted)
            .group_by(AuditLog.action_type)
            .order_by(counted.desc(), AuditLog.action_type)
            .limit(5)
            .all()
        )
        return {
            "total_logs": total,
            "today_logs": today,
            "week_logs": week,
            "top_actions": [{"action_type": a, "count": c} for a, c in top],
        }

    @staticmethod
    def delete_old_logs(db: Session, actor: Actor, days_to_keep: int = 90) -> int:
        """Retention cleanup. Super Admin only.

        Raises:
            ForbiddenError: the actor is not a super admin.
        """
        authorization_service.require_super_admin(actor, "Only Super Admin can delete audit logs")
        if days_to_keep < 1:
            raise ValidationError("days_to_keep must be at least 1")

        cutoff = utcnow() - timedelta(days=days_to_keep)
        deleted = (
            db.query(AuditLog)
            .filter(AuditLog.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info("Deleted %s audit log(s) older than %s days", deleted, days_to_keep)

        AuditService.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.AUDIT_CLEANUP,
            target_type="audit_log",
            metadata={"days_to_keep": days_to_keep, "deleted_count": deleted},
        )
        return deleted


audit_service = AuditService()
