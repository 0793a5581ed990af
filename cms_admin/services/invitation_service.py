"""Invitation & activation workflow.

States: issued -> accepted (profile active), or issued -> expired by the clock
alone. Raw tokens leave this module exactly once (returned from
``issue_invitation``) and are otherwise only ever seen hashed.
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cms_admin.core.clock import as_utc, utcnow
from cms_admin.core.config import settings
from cms_admin.core.exceptions import (
    AcceptInvitationError, CMSAdminError, InvalidInvitationError,
    InvitationExpiredError, ResourceConflictError, ResourceNotFoundError,
    ValidationError,
)
from cms_admin.core.permissions import Permissions
from cms_admin.core.security import generate_token, hash_token
from cms_admin.identity.base import IdentityProvider
from cms_admin.models.invitation import Invitation
from cms_admin.models.role import Role
from cms_admin.models.user import User, UserStatus
from cms_admin.schemas.schemas import Actor, InvitationDetails
from cms_admin.services.audit_service import AuditActions, audit_service
from cms_admin.services.authorization_service import authorization_service

logger = logging.getLogger("cms_admin")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_password(password: Optional[str]) -> None:
    if not password or len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long"
        )


async def discard_identity_account(identity: IdentityProvider, account_id: str) -> None:
    """Best-effort removal of an identity account whose profile was never written."""
    try:
        await identity.admin_delete_user(account_id)
    except Exception:
        logger.exception("Rollback failed: identity account %s is orphaned", account_id)


class InvitationService:
    """Issues, verifies and redeems invitations."""

    @staticmethod
    def issue_invitation(
        db: Session,
        issuer: Actor,
        email: str,
        name: str,
        role_id: str,
    ) -> Tuple[Invitation, str]:
        """Create an invitation and return it with its raw token.

        Earlier pending invitations for the same email stay valid; each is
        looked up by its own token.
        """
        authorization_service.require_permission(db, issuer, Permissions.USERS_CREATE)

        email = normalize_email(email)
        name = (name or "").strip()
        if not email or not name or not role_id:
            raise ValidationError("Email, name, and role are required")

        if db.query(Role.id).filter(Role.id == role_id).first() is None:
            raise ResourceNotFoundError("Role not found")

        if db.query(User.id).filter(User.email == email).first():
            raise ResourceConflictError("A user with this email already exists")

        raw_token = generate_token()
        invitation = Invitation(
            email=email,
            name=name,
            role_id=role_id,
            token_hash=hash_token(raw_token),
            invited_by=issuer.id,
            expires_at=utcnow() + timedelta(days=settings.INVITATION_EXPIRY_DAYS),
        )
        db.add(invitation)
        db.commit()
        db.refresh(invitation)

        audit_service.log(
            db,
            actor_id=issuer.id,
            action_type=AuditActions.USER_INVITE,
            target_type="invitation",
            target_id=invitation.id,
            metadata={"email": email, "name": name, "role_id": role_id},
        )
        logger.info("Invitation %s issued for %s by %s", invitation.id, email, issuer.id)
        return invitation, raw_token

    @staticmethod
    def _find_pending(db: Session, raw_token: str) -> Invitation:
        """Pending invitation for ``raw_token``.

        Raises:
            InvalidInvitationError: no unused invitation has this token. The
                message does not say whether it was used, unknown or malformed.
            InvitationExpiredError: the token is authentic but past expiry.
        """
        if not raw_token or not isinstance(raw_token, str):
            raise InvalidInvitationError()

        invitation = (
            db.query(Invitation)
            .filter(
                Invitation.token_hash == hash_token(raw_token),
                Invitation.accepted_at.is_(None),
            )
            .first()
        )
        if invitation is None:
            raise InvalidInvitationError()
        if utcnow() > as_utc(invitation.expires_at):
            raise InvitationExpiredError()
        return invitation

    @staticmethod
    def verify_invitation_token(db: Session, raw_token: str) -> InvitationDetails:
        invitation = InvitationService._find_pending(db, raw_token)
        return InvitationDetails(
            email=invitation.email,
            name=invitation.name,
            role_id=invitation.role_id,
        )

    @staticmethod
    def _claim(db: Session, invitation_id: str) -> bool:
        """Set ``accepted_at`` only if still unset. False when another caller won."""
        result = db.execute(
            update(Invitation)
            .where(Invitation.id == invitation_id, Invitation.accepted_at.is_(None))
            .values(accepted_at=utcnow())
        )
        db.commit()
        return result.rowcount == 1

    @staticmethod
    def _release(db: Session, invitation_id: str) -> None:
        """Undo a claim so the same token can be retried."""
        try:
            db.execute(
                update(Invitation)
                .where(Invitation.id == invitation_id)
                .values(accepted_at=None)
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not release claim on invitation %s", invitation_id)

    @staticmethod
    async def accept_invitation(
        db: Session,
        identity: IdentityProvider,
        raw_token: str,
        name: str,
        password: str,
    ) -> Actor:
        """Redeem an invitation: identity account + active profile.

        The invitation is claimed first with a conditional write, so of two
        concurrent accepts of one token only one proceeds; the other gets
        ``InvalidInvitationError``. Any failure after the claim releases it so
        the token stays usable; if the profile insert fails after the identity
        account was created, the account is deleted again.

        Raises:
            InvalidInvitationError, InvitationExpiredError, ValidationError,
            AcceptInvitationError: generic failure after cleanup.
        """
        invitation = InvitationService._find_pending(db, raw_token)

        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")
        validate_password(password)

        invitation_id = invitation.id
        email = invitation.email
        role_id = invitation.role_id

        if not InvitationService._claim(db, invitation_id):
            raise InvalidInvitationError()

        try:
            account = await identity.admin_create_user(
                email=email,
                password=password,
                email_confirm=True,
                user_metadata={"name": name},
            )
        except CMSAdminError as e:
            logger.error("Identity account creation failed for invitation %s: %s", invitation_id, e.message)
            InvitationService._release(db, invitation_id)
            raise AcceptInvitationError("Failed to create account. Please try again.")
        except Exception:
            logger.exception("Identity account creation failed for invitation %s", invitation_id)
            InvitationService._release(db, invitation_id)
            raise AcceptInvitationError("Failed to create account. Please try again.")

        try:
            user = User(
                id=account.id,
                name=name,
                email=email,
                role_id=role_id,
                status=UserStatus.active,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
        except Exception:
            db.rollback()
            logger.exception("Profile creation failed for invitation %s", invitation_id)
            await discard_identity_account(identity, account.id)
            InvitationService._release(db, invitation_id)
            raise AcceptInvitationError("Failed to create user profile. Please try again.")

        audit_service.log(
            db,
            actor_id=user.id,
            action_type=AuditActions.USER_INVITATION_ACCEPTED,
            target_type="user",
            target_id=user.id,
            metadata={"invitation_id": invitation_id},
        )
        logger.info("Invitation %s accepted by %s", invitation_id, user.id)
        return Actor.model_validate(user)

    @staticmethod
    def activate_after_setup(db: Session, actor: Actor) -> Actor:
        """``invited -> active`` once the identity service holds a password.

        Already-active actors are returned unchanged and nothing is audited.
        """
        user = db.query(User).filter(User.id == actor.id).first()
        if user is None:
            raise ResourceNotFoundError("User not found")
        if user.status == UserStatus.active:
            return Actor.model_validate(user)
        if user.status != UserStatus.invited:
            raise ValidationError(f"Cannot activate a user with status '{user.status.value}'")

        user.status = UserStatus.active
        db.commit()
        db.refresh(user)

        audit_service.log(
            db,
            actor_id=user.id,
            action_type=AuditActions.USER_ACTIVATED,
            target_type="user",
            target_id=user.id,
            metadata={"activation_type": "password_setup"},
        )
        return Actor.model_validate(user)


invitation_service = InvitationService()
