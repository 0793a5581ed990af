"""User administration."""

import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cms_admin.core.config import settings
from cms_admin.core.exceptions import (
    CMSAdminError, ForbiddenError, IdentityError, ResourceConflictError,
    ResourceNotFoundError, ValidationError,
)
from cms_admin.core.permissions import Permissions
from cms_admin.identity.base import IdentityProvider
from cms_admin.models.role import Role
from cms_admin.models.user import User, UserStatus
from cms_admin.schemas.schemas import Actor
from cms_admin.services.audit_service import AuditActions, audit_service
from cms_admin.services.authorization_service import authorization_service
from cms_admin.services.invitation_service import (
    discard_identity_account, normalize_email, validate_password,
)

logger = logging.getLogger("cms_admin")


class UserService:
    """Lists and manages admin profiles."""

    @staticmethod
    def list_users(
        db: Session,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        query = db.query(User).filter(User.status != UserStatus.deleted)
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(or_(User.name.ilike(term), User.email.ilike(term)))

        total = query.count()
        users = (
            query.order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "items": users,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        }

    @staticmethod
    def get_user(db: Session, user_id: str) -> User:
        user = (
            db.query(User)
            .filter(User.id == user_id, User.status != UserStatus.deleted)
            .first()
        )
        if not user:
            raise ResourceNotFoundError("User not found")
        return user

    @staticmethod
    def _require_role(db: Session, role_id: str) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise ResourceNotFoundError("Role not found")
        return role

    @staticmethod
    async def create_user(
        db: Session,
        identity: IdentityProvider,
        actor: Actor,
        email: str,
        name: str,
        role_id: str,
        password: Optional[str] = None,
    ) -> User:
        """Create an identity account and its profile.

        With a password the profile starts ``active``. Without one the
        identity service emails a setup link and the profile stays
        ``invited`` until ``activate_after_setup``.
        """
        authorization_service.require_permission(db, actor, Permissions.USERS_CREATE)

        email = normalize_email(email)
        name = (name or "").strip()
        if not email or not name:
            raise ValidationError("Email and name are required")
        if password is not None:
            validate_password(password)
        UserService._require_role(db, role_id)

        if db.query(User.id).filter(User.email == email).first():
            raise ResourceConflictError("A user with this email already exists")

        metadata = {"name": name}
        try:
            if password is not None:
                account = await identity.admin_create_user(
                    email=email, password=password, email_confirm=True, user_metadata=metadata,
                )
                status = UserStatus.active
            else:
                account = await identity.admin_invite_user(
                    email=email, user_metadata=metadata, redirect_to=settings.auth_callback_url,
                )
                status = UserStatus.invited
        except ResourceConflictError:
            raise
        except CMSAdminError as e:
            logger.error("Identity account creation failed for %s: %s", email, e.message)
            raise IdentityError("Failed to create account. Please try again.")

        try:
            user = User(id=account.id, name=name, email=email, role_id=role_id, status=status)
            db.add(user)
            db.commit()
            db.refresh(user)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Profile creation failed for %s", email)
            await discard_identity_account(identity, account.id)
            raise IdentityError("Failed to create user profile. Please try again.")

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.USER_CREATE,
            target_type="user",
            target_id=user.id,
            metadata={"email": email, "role_id": role_id, "status": status.value},
        )
        return user

    @staticmethod
    def update_user(
        db: Session,
        actor: Actor,
        user_id: str,
        name: Optional[str] = None,
        role_id: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        authorization_service.require_permission(db, actor, Permissions.USERS_EDIT)
        user = UserService.get_user(db, user_id)
        if user.role.is_super_admin:
            raise ForbiddenError("Super Admin users cannot be modified")

        changes: Dict[str, Any] = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Name cannot be empty")
            if name != user.name:
                changes["name"] = {"from": user.name, "to": name}
                user.name = name
        if role_id is not None and role_id != user.role_id:
            role = UserService._require_role(db, role_id)
            if role.is_super_admin:
                raise ForbiddenError("Super Admin role cannot be assigned")
            changes["role_id"] = {"from": user.role_id, "to": role_id}
            user.role_id = role_id
        if avatar_url is not None and avatar_url != user.avatar_url:
            changes["avatar_url"] = {"from": user.avatar_url, "to": avatar_url}
            user.avatar_url = avatar_url

        if not changes:
            return user

        db.commit()
        db.refresh(user)
        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.USER_UPDATE,
            target_type="user",
            target_id=user.id,
            metadata=changes,
        )
        return user

    @staticmethod
    def set_status(db: Session, actor: Actor, user_id: str, status: str) -> User:
        """Toggle between ``active`` and ``inactive``."""
        authorization_service.require_permission(db, actor, Permissions.USERS_EDIT)
        try:
            new_status = UserStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status '{status}'")
        if new_status not in (UserStatus.active, UserStatus.inactive):
            raise ValidationError("Status must be 'active' or 'inactive'")

        user = UserService.get_user(db, user_id)
        if user.role.is_super_admin:
            raise ForbiddenError("Super Admin users cannot be deactivated")
        if user.status == UserStatus.invited:
            raise ValidationError("Invited users must complete account setup first")
        if user.id == actor.id:
            raise ForbiddenError("You cannot change your own status")
        if user.status == new_status:
            return user

        old_status = user.status
        user.status = new_status
        db.commit()
        db.refresh(user)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.USER_STATUS_CHANGE,
            target_type="user",
            target_id=user.id,
            metadata={"from": old_status.value, "to": new_status.value},
        )
        return user

    @staticmethod
    def delete_user(db: Session, actor: Actor, user_id: str) -> None:
        """Soft delete: the profile stays, with status ``deleted``."""
        authorization_service.require_permission(db, actor, Permissions.USERS_DELETE)
        user = UserService.get_user(db, user_id)
        if user.role.is_super_admin:
            raise ForbiddenError("Super Admin users cannot be deleted")
        if user.id == actor.id:
            raise ForbiddenError("You cannot delete your own account")

        user.status = UserStatus.deleted
        db.commit()

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.USER_DELETE,
            target_type="user",
            target_id=user_id,
            metadata={"email": user.email},
        )


user_service = UserService()
