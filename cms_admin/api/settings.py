"""Settings API router (allowed domains)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cms_admin.core.permissions import Permissions
from cms_admin.core.security import RequirePermission
from cms_admin.db.session import get_db
from cms_admin.schemas.schemas import (
    ActionResponse, Actor, AllowedDomainIn, AllowedDomainOut, AllowedDomainUpdate, Page,
)
from cms_admin.services.allowed_domain_service import allowed_domain_service

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/allowed-domains", response_model=ActionResponse[Page[AllowedDomainOut]])
async def list_allowed_domains(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.SETTINGS_MANAGE)),
):
    result = allowed_domain_service.list_domains(db, actor, page, limit, search)
    result["items"] = [AllowedDomainOut.model_validate(d) for d in result["items"]]
    return ActionResponse(success=True, data=Page[AllowedDomainOut](**result))


@router.post("/allowed-domains", response_model=ActionResponse[AllowedDomainOut], status_code=201)
async def create_allowed_domain(
    body: AllowedDomainIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.SETTINGS_MANAGE)),
):
    record = allowed_domain_service.create_domain(db, actor, body.domain, body.description, body.is_active)
    return ActionResponse(success=True, data=AllowedDomainOut.model_validate(record), message="Domain added")


@router.patch("/allowed-domains/{domain_id}", response_model=ActionResponse[AllowedDomainOut])
async def update_allowed_domain(
    domain_id: str,
    body: AllowedDomainUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.SETTINGS_MANAGE)),
):
    record = allowed_domain_service.update_domain(
        db, actor, domain_id,
        domain=body.domain, description=body.description, is_active=body.is_active,
    )
    return ActionResponse(success=True, data=AllowedDomainOut.model_validate(record), message="Domain updated")


@router.delete("/allowed-domains/{domain_id}", response_model=ActionResponse[None])
async def delete_allowed_domain(
    domain_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.SETTINGS_MANAGE)),
):
    allowed_domain_service.delete_domain(db, actor, domain_id)
    return ActionResponse(success=True, message="Domain deleted")
