"""Self-hosted identity backend.

Stores bcrypt password hashes and issued JWTs (by SHA-256) in the same
database as the admin tables. Every ``get_user`` call checks the stored
session, so sign-out and account deletion take effect immediately.
"""

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from cms_admin.core.clock import as_utc, utcnow
from cms_admin.core.config import settings
from cms_admin.core.exceptions import (
    AuthenticationError, IdentityUnavailableError, ResourceConflictError, ResourceNotFoundError,
)
from cms_admin.core.security import (
    create_access_token, decode_token, hash_password, sha256_hex, verify_password,
)
from cms_admin.identity.base import IdentityProvider, IdentitySession, IdentityUser
from cms_admin.identity.delivery import EmailDelivery, LogEmailDelivery
from cms_admin.models.identity import LocalIdentity, LocalIdentitySession

logger = logging.getLogger("cms_admin")

RECOVERY_TTL_MINUTES = 60


def _to_user(identity: LocalIdentity) -> IdentityUser:
    return IdentityUser(
        id=identity.id,
        email=identity.email,
        email_confirmed_at=as_utc(identity.email_confirmed_at),
        user_metadata=dict(identity.user_metadata or {}),
    )


class LocalIdentityProvider(IdentityProvider):
    """Identity provider over ``local_identities`` / ``local_identity_sessions``."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        delivery: Optional[EmailDelivery] = None,
    ):
        self._session_factory = session_factory
        self.delivery = delivery or LogEmailDelivery()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except IntegrityError:
            db.rollback()
            raise ResourceConflictError("A user with this email address has already been registered")
        except OperationalError:
            db.rollback()
            logger.exception("Identity store unavailable")
            raise IdentityUnavailableError()
        finally:
            db.close()

    @staticmethod
    def _find_by_email(db: Session, email: str) -> Optional[LocalIdentity]:
        return db.query(LocalIdentity).filter(LocalIdentity.email == email.strip().lower()).first()

    @staticmethod
    def _issue(db: Session, identity: LocalIdentity, minutes: int) -> Tuple[str, int]:
        expires = timedelta(minutes=minutes)
        token = create_access_token({"sub": identity.id, "email": identity.email}, expires)
        db.add(LocalIdentitySession(
            identity_id=identity.id,
            token_hash=sha256_hex(token),
            expires_at=utcnow() + expires,
        ))
        db.commit()
        return token, int(expires.total_seconds())

    @staticmethod
    def _live_session(db: Session, access_token: str) -> LocalIdentitySession:
        if not access_token:
            raise AuthenticationError("Not authenticated")
        decode_token(access_token)
        session = (
            db.query(LocalIdentitySession)
            .filter(LocalIdentitySession.token_hash == sha256_hex(access_token))
            .first()
        )
        if session is None or session.revoked_at is not None:
            raise AuthenticationError("Invalid or expired token")
        if as_utc(session.expires_at) <= utcnow():
            raise AuthenticationError("Invalid or expired token")
        return session

    def _identity_for(self, db: Session, access_token: str) -> LocalIdentity:
        session = self._live_session(db, access_token)
        identity = db.query(LocalIdentity).filter(LocalIdentity.id == session.identity_id).first()
        if identity is None:
            raise AuthenticationError("Invalid or expired token")
        return identity

    async def get_user(self, access_token: str) -> IdentityUser:
        with self._session() as db:
            return _to_user(self._identity_for(db, access_token))

    async def sign_in_with_password(self, email: str, password: str) -> IdentitySession:
        with self._session() as db:
            identity = self._find_by_email(db, email)
            if (
                identity is None
                or not identity.hashed_password
                or not verify_password(password, identity.hashed_password)
            ):
                raise AuthenticationError("Invalid email or password")
            token, expires_in = self._issue(db, identity, settings.JWT_EXPIRY_MINUTES)
            return IdentitySession(access_token=token, expires_in=expires_in, user=_to_user(identity))

    async def sign_out(self, access_token: str) -> None:
        with self._session() as db:
            session = (
                db.query(LocalIdentitySession)
                .filter(LocalIdentitySession.token_hash == sha256_hex(access_token or ""))
                .first()
            )
            if session is not None and session.revoked_at is None:
                session.revoked_at = utcnow()
                db.commit()

    async def update_password(self, access_token: str, password: str) -> IdentityUser:
        with self._session() as db:
            identity = self._identity_for(db, access_token)
            identity.hashed_password = hash_password(password)
            if identity.email_confirmed_at is None:
                identity.email_confirmed_at = utcnow()
            db.commit()
            db.refresh(identity)
            return _to_user(identity)

    async def send_password_reset(self, email: str, redirect_to: str) -> None:
        with self._session() as db:
            identity = self._find_by_email(db, email)
            if identity is None:
                return
            token, _ = self._issue(db, identity, RECOVERY_TTL_MINUTES)
            recipient = identity.email
        await self.delivery.deliver(
            "recovery", recipient, f"{redirect_to}#access_token={token}&type=recovery"
        )

    def _create(
        self,
        db: Session,
        email: str,
        hashed_password: Optional[str],
        confirmed: bool,
        user_metadata: Optional[Dict[str, Any]],
    ) -> LocalIdentity:
        if self._find_by_email(db, email) is not None:
            raise ResourceConflictError("A user with this email address has already been registered")
        identity = LocalIdentity(
            email=email.strip().lower(),
            hashed_password=hashed_password,
            email_confirmed_at=utcnow() if confirmed else None,
            user_metadata=user_metadata or {},
        )
        db.add(identity)
        db.commit()
        db.refresh(identity)
        return identity

    async def admin_create_user(self, email, password, email_confirm=True, user_metadata=None) -> IdentityUser:
        with self._session() as db:
            identity = self._create(db, email, hash_password(password), email_confirm, user_metadata)
            user = _to_user(identity)
        logger.info("Local identity %s created", user.id)
        return user

    async def admin_invite_user(self, email, user_metadata=None, redirect_to=None) -> IdentityUser:
        with self._session() as db:
            identity = self._create(db, email, None, False, user_metadata)
            token, _ = self._issue(db, identity, settings.INVITATION_EXPIRY_DAYS * 24 * 60)
            user = _to_user(identity)
        link = f"{redirect_to or settings.auth_callback_url}#access_token={token}&type=invite"
        await self.delivery.deliver("invite", user.email, link, {"name": user.user_metadata.get("name")})
        return user

    async def admin_delete_user(self, user_id: str) -> None:
        with self._session() as db:
            identity = db.query(LocalIdentity).filter(LocalIdentity.id == user_id).first()
            if identity is None:
                raise ResourceNotFoundError("User not found")
            db.query(LocalIdentitySession).filter(
                LocalIdentitySession.identity_id == user_id
            ).delete(synchronize_session=False)
            db.delete(identity)
            db.commit()
        logger.info("Local identity %s deleted", user_id)
