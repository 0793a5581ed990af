"""Allowed domains: origins permitted to call the public content API."""

import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cms_admin.core.clock import utcnow
from cms_admin.core.exceptions import ResourceConflictError, ResourceNotFoundError, ValidationError
from cms_admin.core.permissions import Permissions
from cms_admin.models.allowed_domain import AllowedDomain
from cms_admin.schemas.schemas import Actor
from cms_admin.services.audit_service import AuditActions, audit_service
from cms_admin.services.authorization_service import authorization_service

logger = logging.getLogger("cms_admin")


def normalize_domain(domain: str) -> str:
    domain = (domain or "").strip().rstrip("/")
    if not domain.startswith(("http://", "https://")):
        raise ValidationError("Domain must start with http:// or https://")
    if domain in ("http://", "https://") or "/" in domain.split("://", 1)[1]:
        raise ValidationError("Domain must be an origin such as https://example.com")
    return domain.lower()


class AllowedDomainService:

    @staticmethod
    def list_domains(
        db: Session,
        actor: Actor,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        authorization_service.require_permission(db, actor, Permissions.SETTINGS_MANAGE)
        query = db.query(AllowedDomain)
        if search:
            query = query.filter(AllowedDomain.domain.ilike(f"%{search.strip()}%"))
        total = query.count()
        items = (
            query.order_by(AllowedDomain.domain)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        }

    @staticmethod
    def _get(db: Session, domain_id: str) -> AllowedDomain:
        domain = db.query(AllowedDomain).filter(AllowedDomain.id == domain_id).first()
        if not domain:
            raise ResourceNotFoundError("Allowed domain not found")
        return domain

    @staticmethod
    def _ensure_unique(db: Session, domain: str, exclude_id: Optional[str] = None) -> None:
        query = db.query(AllowedDomain.id).filter(AllowedDomain.domain == domain)
        if exclude_id:
            query = query.filter(AllowedDomain.id != exclude_id)
        if query.first():
            raise ResourceConflictError(f"Domain '{domain}' is already allowed")

    @staticmethod
    def create_domain(
        db: Session,
        actor: Actor,
        domain: str,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> AllowedDomain:
        authorization_service.require_permission(db, actor, Permissions.SETTINGS_MANAGE)
        domain = normalize_domain(domain)
        AllowedDomainService._ensure_unique(db, domain)

        record = AllowedDomain(
            domain=domain,
            description=description,
            is_active=is_active,
            created_by=actor.id,
            updated_by=actor.id,
        )
        db.add(record)
        db.commit()
        db.refresh(record)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.ALLOWED_DOMAIN_CREATED,
            target_type="allowed_domain",
            target_id=record.id,
            metadata={"domain": domain, "is_active": is_active},
        )
        return record

    @staticmethod
    def update_domain(
        db: Session,
        actor: Actor,
        domain_id: str,
        domain: Optional[str] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> AllowedDomain:
        authorization_service.require_permission(db, actor, Permissions.SETTINGS_MANAGE)
        record = AllowedDomainService._get(db, domain_id)

        changes: Dict[str, Any] = {}
        if domain is not None:
            domain = normalize_domain(domain)
            if domain != record.domain:
                AllowedDomainService._ensure_unique(db, domain, exclude_id=record.id)
                changes["domain"] = {"from": record.domain, "to": domain}
                record.domain = domain
        if description is not None and description != record.description:
            changes["description"] = {"from": record.description, "to": description}
            record.description = description
        if is_active is not None and is_active != record.is_active:
            changes["is_active"] = {"from": record.is_active, "to": is_active}
            record.is_active = is_active

        if not changes:
            return record

        record.updated_by = actor.id
        db.commit()
        db.refresh(record)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.ALLOWED_DOMAIN_UPDATED,
            target_type="allowed_domain",
            target_id=record.id,
            metadata=changes,
        )
        return record

    @staticmethod
    def delete_domain(db: Session, actor: Actor, domain_id: str) -> None:
        authorization_service.require_permission(db, actor, Permissions.SETTINGS_MANAGE)
        record = AllowedDomainService._get(db, domain_id)
        domain = record.domain
        db.delete(record)
        db.commit()

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.ALLOWED_DOMAIN_DELETED,
            target_type="allowed_domain",
            target_id=domain_id,
            metadata={"domain": domain},
        )

    @staticmethod
    def is_origin_allowed(db: Session, origin: Optional[str]) -> bool:
        """True when ``origin`` matches an active entry.

        An unknown origin is recorded as an inactive entry so an administrator
        can review and enable it later.
        """
        if not origin:
            return False
        try:
            origin = normalize_domain(origin)
        except ValidationError:
            return False

        record = db.query(AllowedDomain).filter(AllowedDomain.domain == origin).first()
        if record is not None:
            return bool(record.is_active)

        db.add(AllowedDomain(
            domain=origin,
            description=f"Auto-tracked: attempted to access the public content API on {utcnow().isoformat()}",
            is_active=False,
        ))
        try:
            db.commit()
            logger.info("Tracked unauthorized origin %s", origin)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not track unauthorized origin %s", origin)
        return False


allowed_domain_service = AllowedDomainService()
