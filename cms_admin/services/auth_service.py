"""Auth service: sign-in, sign-out and password flows over the identity service."""

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from cms_admin.core.clock import utcnow
from cms_admin.core.config import settings
from cms_admin.core.exceptions import (
    AuthenticationError, CMSAdminError, IdentityError, IdentityUnavailableError,
)
from cms_admin.core.permissions import MENU_CONFIG, filter_menu
from cms_admin.identity.base import IdentityProvider
from cms_admin.models.user import User
from cms_admin.schemas.schemas import Actor
from cms_admin.services.audit_service import AuditActions, audit_service
from cms_admin.services.authorization_service import LOCKED_STATUSES, authorization_service
from cms_admin.services.invitation_service import (
    invitation_service, normalize_email, validate_password,
)

logger = logging.getLogger("cms_admin")

INVALID_CREDENTIALS = "Invalid email or password"
RESET_REQUESTED = "If an account exists with this email, you will receive a password reset link."


class AuthService:
    """Handles authentication against the identity service."""

    @staticmethod
    async def _sign_out_quietly(identity: IdentityProvider, access_token: str) -> None:
        try:
            await identity.sign_out(access_token)
        except CMSAdminError as e:
            logger.warning("Sign-out failed: %s", e.message)

    @staticmethod
    async def login(
        db: Session,
        identity: IdentityProvider,
        email: str,
        password: str,
        request: Optional[Request] = None,
    ) -> Dict[str, Any]:
        """Authenticate and return the identity session with the actor.

        Raises:
            AuthenticationError: bad credentials, or no usable admin profile.
            IdentityUnavailableError: the identity service could not answer.
        """
        email = normalize_email(email)
        try:
            session = await identity.sign_in_with_password(email, password)
        except AuthenticationError:
            audit_service.log_from_request(
                db, request,
                actor_id=None,
                action_type=AuditActions.LOGIN_FAILURE,
                target_type="user",
                metadata={"email": email, "reason": "invalid_credentials"},
            )
            raise AuthenticationError(INVALID_CREDENTIALS)

        user = db.query(User).filter(User.id == session.user.id).first()
        if user is None or user.role is None or user.status in LOCKED_STATUSES:
            await AuthService._sign_out_quietly(identity, session.access_token)
            reason = "no_profile" if user is None else "account_" + user.status.value
            audit_service.log_from_request(
                db, request,
                actor_id=None,
                action_type=AuditActions.LOGIN_FAILURE,
                target_type="user",
                target_id=user.id if user else None,
                metadata={"email": email, "reason": reason},
            )
            if user is None:
                raise AuthenticationError(INVALID_CREDENTIALS)
            raise AuthenticationError("Account is deactivated. Please contact an administrator.")

        user.last_login_at = utcnow()
        db.commit()
        db.refresh(user)

        audit_service.log_from_request(
            db, request,
            actor_id=user.id,
            action_type=AuditActions.LOGIN_SUCCESS,
            target_type="user",
            target_id=user.id,
            metadata={"email": email},
        )
        return {
            "access_token": session.access_token,
            "refresh_token": session.refresh_token,
            "token_type": session.token_type,
            "expires_in": session.expires_in,
            "user": Actor.model_validate(user),
        }

    @staticmethod
    async def logout(
        db: Session,
        identity: IdentityProvider,
        actor: Actor,
        access_token: str,
        request: Optional[Request] = None,
    ) -> None:
        await AuthService._sign_out_quietly(identity, access_token)
        audit_service.log_from_request(
            db, request,
            actor_id=actor.id,
            action_type=AuditActions.LOGOUT,
            target_type="user",
            target_id=actor.id,
        )

    @staticmethod
    async def forgot_password(
        db: Session,
        identity: IdentityProvider,
        email: str,
        request: Optional[Request] = None,
    ) -> str:
        """Ask the identity service for a recovery email.

        Always answers with the same message so callers cannot discover which
        emails have accounts.
        """
        email = normalize_email(email)
        try:
            await identity.send_password_reset(email, redirect_to=settings.reset_password_url)
        except IdentityUnavailableError:
            raise
        except IdentityError as e:
            logger.error("Password reset request for %s failed: %s", email, e.message)

        user = db.query(User.id).filter(User.email == email).first()
        audit_service.log_from_request(
            db, request,
            actor_id=None,
            action_type=AuditActions.PASSWORD_RESET_REQUEST,
            target_type="user",
            target_id=user.id if user else None,
            metadata={"email": email},
        )
        return RESET_REQUESTED

    @staticmethod
    async def reset_password(
        db: Session,
        identity: IdentityProvider,
        access_token: str,
        password: str,
        request: Optional[Request] = None,
    ) -> None:
        """Set a new password using the recovery session from the email link."""
        validate_password(password)
        account = await identity.update_password(access_token, password)

        user = db.query(User.id).filter(User.id == account.id).first()
        audit_service.log_from_request(
            db, request,
            actor_id=user.id if user else None,
            action_type=AuditActions.PASSWORD_RESET,
            target_type="user",
            target_id=account.id,
        )

    @staticmethod
    async def setup_password(
        db: Session,
        identity: IdentityProvider,
        access_token: str,
        password: str,
    ) -> Actor:
        """First password for an account created without one, then activation."""
        validate_password(password)
        actor = await authorization_service.resolve_identity(db, identity, access_token)
        await identity.update_password(access_token, password)
        return invitation_service.activate_after_setup(db, actor)

    @staticmethod
    def me(db: Session, actor: Actor) -> Dict[str, Any]:
        granted = authorization_service.list_permissions(db, actor)
        return {
            "user": actor,
            "permissions": sorted(granted),
            "menu": [item.to_dict() for item in filter_menu(MENU_CONFIG, granted)],
        }


auth_service = AuthService()
