"""Roles & permissions API router."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cms_admin.core.permissions import Permissions, group_permissions
from cms_admin.core.security import RequirePermission
from cms_admin.db.session import get_db
from cms_admin.schemas.schemas import (
    ActionResponse, Actor, PermissionGroupOut, PermissionOut, RoleCreate, RoleOut,
    RolePermissionsUpdate, RoleUpdate,
)
from cms_admin.services.role_service import role_service

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=ActionResponse[List[RoleOut]])
async def list_roles(
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.ROLES_VIEW)),
):
    roles = role_service.list_roles(db, search)
    return ActionResponse(success=True, data=[RoleOut(**role_service.to_dict(db, r)) for r in roles])


@router.get("/permissions", response_model=ActionResponse[List[PermissionGroupOut]])
async def list_permission_catalog(
    actor: Actor = Depends(RequirePermission(Permissions.ROLES_VIEW)),
):
    """The permission catalog, grouped for display."""
    groups = [
        PermissionGroupOut(
            group=group,
            permissions=[
                PermissionOut(key=p.key, label=p.label, description=p.description, group=p.group)
                for p in definitions
            ],
        )
        for group, definitions in group_permissions().items()
    ]
    return ActionResponse(success=True, data=groups)


@router.get("/{role_id}", response_model=ActionResponse[RoleOut])
async def get_role(
    role_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.ROLES_VIEW)),
):
    role = role_service.get_role(db, role_id)
    return ActionResponse(success=True, data=RoleOut(**role_service.to_dict(db, role)))


@router.post("", response_model=ActionResponse[RoleOut], status_code=201)
async def create_role(
    body: RoleCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.ROLES_CREATE)),
):
    role = role_service.create_role(db, actor, body.name, body.description, body.permissions)
    return ActionResponse(success=True, data=RoleOut(**role_service.to_dict(db, role)), message="Role created")


@router.patch("/{role_id}", response_model=ActionResponse[RoleOut])
async def update_role(
    role_id: str,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.ROLES_EDIT)),
):
    role = role_service.update_role(db, actor, role_id, name=body.name, description=body.description)
    return ActionResponse(success=True, data=RoleOut(**role_service.to_dict(db, role)), message="Role updated")


@router.put("/{role_id}/permissions", response_model=ActionResponse[RoleOut])
async def set_role_permissions(
    role_id: str,
    body: RolePermissionsUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.ROLES_EDIT)),
):
    role = role_service.set_role_permissions(db, actor, role_id, body.permissions)
    return ActionResponse(
        success=True, data=RoleOut(**role_service.to_dict(db, role)), message="Permissions updated",
    )


@router.delete("/{role_id}", response_model=ActionResponse[None])
async def delete_role(
    role_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(RequirePermission(Permissions.ROLES_DELETE)),
):
    role_service.delete_role(db, actor, role_id)
    return ActionResponse(success=True, message="Role deleted")
