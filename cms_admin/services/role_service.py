"""Role administration."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from cms_admin.core.exceptions import (
    ForbiddenError, ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from cms_admin.core.permissions import Permissions, all_permission_keys, is_known_permission
from cms_admin.models.role import Role, RolePermission
from cms_admin.models.user import User, UserStatus
from cms_admin.schemas.schemas import Actor
from cms_admin.services.audit_service import AuditActions, audit_service
from cms_admin.services.authorization_service import authorization_service

logger = logging.getLogger("cms_admin")

SUPER_ADMIN_IMMUTABLE = "Super Admin role cannot be modified"


def _count_users(db: Session, role_id: str, include_deleted: bool = False) -> int:
    query = db.query(func.count(User.id)).filter(User.role_id == role_id)
    if not include_deleted:
        query = query.filter(User.status != UserStatus.deleted)
    return query.scalar() or 0


def _validate_keys(keys: Iterable[str]) -> List[str]:
    keys = list(dict.fromkeys(keys))
    unknown = [k for k in keys if not is_known_permission(k)]
    if unknown:
        raise ValidationError(f"Unknown permission(s): {', '.join(sorted(unknown))}")
    return keys


class RoleService:
    """Create, edit, delete roles and their permission sets."""

    @staticmethod
    def to_dict(db: Session, role: Role) -> Dict[str, Any]:
        if role.is_super_admin:
            keys = all_permission_keys()
        else:
            keys = sorted(p.permission_key for p in role.permissions)
        return {
            "id": role.id,
            "name": role.name,
            "description": role.description,
            "is_super_admin": role.is_super_admin,
            "is_system": role.is_system,
            "user_count": _count_users(db, role.id),
            "permissions": keys,
            "created_at": role.created_at,
            "updated_at": role.updated_at,
        }

    @staticmethod
    def list_roles(db: Session, search: Optional[str] = None) -> List[Role]:
        query = db.query(Role)
        if search:
            query = query.filter(Role.name.ilike(f"%{search.strip()}%"))
        return query.order_by(Role.name).all()

    @staticmethod
    def get_role(db: Session, role_id: str) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise ResourceNotFoundError("Role not found")
        return role

    @staticmethod
    def create_role(
        db: Session,
        actor: Actor,
        name: str,
        description: Optional[str] = None,
        permission_keys: Iterable[str] = (),
    ) -> Role:
        authorization_service.require_permission(db, actor, Permissions.ROLES_CREATE)

        name = (name or "").strip()
        if not name:
            raise ValidationError("Role name is required")
        keys = _validate_keys(permission_keys)

        if db.query(Role.id).filter(func.lower(Role.name) == name.lower()).first():
            raise ResourceConflictError(f"A role named '{name}' already exists")

        role = Role(name=name, description=description)
        role.permissions = [RolePermission(permission_key=k) for k in keys]
        db.add(role)
        db.commit()
        db.refresh(role)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.ROLE_CREATE,
            target_type="role",
            target_id=role.id,
            metadata={"name": name, "permissions": keys},
        )
        logger.info("Role '%s' created by %s", name, actor.id)
        return role

    @staticmethod
    def update_role(
        db: Session,
        actor: Actor,
        role_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Role:
        authorization_service.require_permission(db, actor, Permissions.ROLES_EDIT)
        role = RoleService.get_role(db, role_id)
        if role.is_super_admin:
            raise ForbiddenError(SUPER_ADMIN_IMMUTABLE)

        changes: Dict[str, Any] = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Role name is required")
            if name != role.name:
                if role.is_system:
                    raise ForbiddenError("System roles cannot be renamed")
                clash = (
                    db.query(Role.id)
                    .filter(func.lower(Role.name) == name.lower(), Role.id != role.id)
                    .first()
                )
                if clash:
                    raise ResourceConflictError(f"A role named '{name}' already exists")
                changes["name"] = {"from": role.name, "to": name}
                role.name = name
        if description is not None and description != role.description:
            changes["description"] = {"from": role.description, "to": description}
            role.description = description

        if not changes:
            return role

        db.commit()
        db.refresh(role)
        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.ROLE_UPDATE,
            target_type="role",
            target_id=role.id,
            metadata=changes,
        )
        return role

    @staticmethod
    def set_role_permissions(db: Session, actor: Actor, role_id: str, permission_keys: Iterable[str]) -> Role:
        """Replace the role's permission set, writing only the difference."""
        authorization_service.require_permission(db, actor, Permissions.ROLES_EDIT)
        role = RoleService.get_role(db, role_id)
        if role.is_super_admin:
            raise ForbiddenError(SUPER_ADMIN_IMMUTABLE)

        wanted = set(_validate_keys(permission_keys))
        current = {p.permission_key: p for p in role.permissions}
        added = sorted(wanted - current.keys())
        removed = sorted(current.keys() - wanted)

        for key in removed:
            role.permissions.remove(current[key])
        for key in added:
            role.permissions.append(RolePermission(permission_key=key))
        db.commit()
        db.refresh(role)

        if added:
            audit_service.log(
                db,
                actor_id=actor.id,
                action_type=AuditActions.PERMISSION_ASSIGN,
                target_type="role",
                target_id=role.id,
                metadata={"role_name": role.name, "permissions": added},
            )
        if removed:
            audit_service.log(
                db,
                actor_id=actor.id,
                action_type=AuditActions.PERMISSION_REVOKE,
                target_type="role",
                target_id=role.id,
                metadata={"role_name": role.name, "permissions": removed},
            )
        return role

    @staticmethod
    def delete_role(db: Session, actor: Actor, role_id: str) -> None:
        authorization_service.require_permission(db, actor, Permissions.ROLES_DELETE)
        role = RoleService.get_role(db, role_id)
        if role.is_super_admin:
            raise ForbiddenError("Super Admin role cannot be deleted")
        if role.is_system:
            raise ForbiddenError("System roles cannot be deleted")

        # Soft-deleted profiles still reference the role
        user_count = _count_users(db, role.id, include_deleted=True)
        if user_count > 0:
            raise ResourceConflictError(
                f"This role has {user_count} user(s) assigned. "
                "Please reassign them before deleting the role."
            )

        name = role.name
        db.delete(role)
        db.commit()

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.ROLE_DELETE,
            target_type="role",
            target_id=role_id,
            metadata={"name": name},
        )
        logger.info("Role '%s' deleted by %s", name, actor.id)


role_service = RoleService()
