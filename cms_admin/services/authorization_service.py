"""Authorization engine: identity resolution and permission checks."""

import logging
from typing import Optional, Set

from sqlalchemy.orm import Session

from cms_admin.core.exceptions import AuthenticationError, ForbiddenError
from cms_admin.core.permissions import all_permission_keys, is_known_permission
from cms_admin.identity.base import IdentityProvider
from cms_admin.models.role import RolePermission
from cms_admin.models.user import User, UserStatus
from cms_admin.schemas.schemas import Actor

logger = logging.getLogger("cms_admin")

# Profiles in these states can no longer act, whatever their credential says.
LOCKED_STATUSES = (UserStatus.inactive, UserStatus.deleted)


class AuthorizationService:
    """Resolves "can this actor perform this action"."""

    @staticmethod
    async def resolve_identity(
        db: Session, identity: IdentityProvider, access_token: Optional[str]
    ) -> Actor:
        """Validate the credential with the identity service and load the actor.

        Raises:
            AuthenticationError: missing/rejected credential, no profile, or a
                profile that is inactive or deleted.
            IdentityUnavailableError: the identity service could not answer.
        """
        if not access_token:
            raise AuthenticationError("Not authenticated")

        account = await identity.get_user(access_token)

        user = db.query(User).filter(User.id == account.id).first()
        if user is None or user.role is None:
            logger.warning("Authenticated account %s has no admin profile", account.id)
            raise AuthenticationError("No admin profile for this account")
        if user.status in LOCKED_STATUSES:
            raise AuthenticationError("Account is deactivated")

        return Actor.model_validate(user)

    @staticmethod
    def has_permission(db: Session, actor: Actor, permission_key: str) -> bool:
        """True iff the actor's role grants ``permission_key``.

        Keys outside the catalog are never granted. Super-admin roles are
        granted every catalog key without reading ``role_permissions``.
        """
        if not is_known_permission(permission_key):
            return False
        if actor.role.is_super_admin:
            return True
        grant = (
            db.query(RolePermission.id)
            .filter(
                RolePermission.role_id == actor.role_id,
                RolePermission.permission_key == permission_key,
            )
            .first()
        )
        return grant is not None

    @staticmethod
    def list_permissions(db: Session, actor: Actor) -> Set[str]:
        """Every key the actor holds; the whole catalog for super admins."""
        if actor.role.is_super_admin:
            return set(all_permission_keys())
        rows = (
            db.query(RolePermission.permission_key)
            .filter(RolePermission.role_id == actor.role_id)
            .all()
        )
        return {key for (key,) in rows if is_known_permission(key)}

    @staticmethod
    def require_permission(db: Session, actor: Actor, permission_key: str) -> None:
        if not AuthorizationService.has_permission(db, actor, permission_key):
            logger.warning("Actor %s denied '%s'", actor.id, permission_key)
            raise ForbiddenError(f"Unauthorized: Missing required permission '{permission_key}'")

    @staticmethod
    def require_active(actor: Actor) -> None:
        """Invited actors must finish password setup before acting."""
        if actor.status != UserStatus.active:
            raise ForbiddenError("Account setup is not complete")

    @staticmethod
    def require_super_admin(actor: Actor, message: str = "Only Super Admin can perform this action") -> None:
        if not actor.role.is_super_admin:
            raise ForbiddenError(message)


authorization_service = AuthorizationService()
