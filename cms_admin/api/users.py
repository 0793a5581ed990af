"""Users API router."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cms_admin.core.permissions import Permissions
from cms_admin.core.security import RequirePermission, get_identity
from cms_admin.db.session import get_db
from cms_admin.identity.base import IdentityProvider
from cms_admin.schemas.schemas import (
    ActionResponse, Actor, AuditLogOut, Page, UserCreateRequest, UserOut,
    UserStatusRequest, UserUpdateRequest,
)
from cms_admin.services.audit_service import audit_service
from cms_admin.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=ActionResponse[Page[UserOut]])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.USERS_VIEW)),
):
    result = user_service.list_users(db, page, limit, search)
    result["items"] = [UserOut.model_validate(u) for u in result["items"]]
    return ActionResponse(success=True, data=Page[UserOut](**result))


@router.post("", response_model=ActionResponse[UserOut], status_code=201)
async def create_user(
    body: UserCreateRequest,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
    actor: Actor = Depends(RequirePermission(Permissions.USERS_CREATE)),
):
    """Create a user directly; without a password the identity service emails a setup link."""
    user = await user_service.create_user(
        db, identity, actor, body.email, body.name, body.role_id, body.password,
    )
    return ActionResponse(success=True, data=UserOut.model_validate(user), message="User created")


@router.get("/{user_id}", response_model=ActionResponse[UserOut])
async def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.USERS_VIEW)),
):
    return ActionResponse(success=True, data=UserOut.model_validate(user_service.get_user(db, user_id)))


@router.get("/{user_id}/audit-logs", response_model=ActionResponse[List[AuditLogOut]])
async def get_user_audit_logs(
    user_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.AUDIT_VIEW)),
):
    logs = audit_service.logs_for_target(db, "user", user_id)
    return ActionResponse(success=True, data=[AuditLogOut.model_validate(log) for log in logs])


@router.patch("/{user_id}", response_model=ActionResponse[UserOut])
async def update_user(
    user_id: str,
    body: UserUpdateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.USERS_EDIT)),
):
    user = user_service.update_user(
        db, actor, user_id, name=body.name, role_id=body.role_id, avatar_url=body.avatar_url,
    )
    return ActionResponse(success=True, data=UserOut.model_validate(user), message="User updated")


@router.patch("/{user_id}/status", response_model=ActionResponse[UserOut])
async def set_user_status(
    user_id: str,
    body: UserStatusRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.USERS_EDIT)),
):
    user = user_service.set_status(db, actor, user_id, body.status)
    return ActionResponse(success=True, data=UserOut.model_validate(user), message="User status updated")


@router.delete("/{user_id}", response_model=ActionResponse[None])
async def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.USERS_DELETE)),
):
    user_service.delete_user(db, actor, user_id)
    return ActionResponse(success=True, message="User deleted")
