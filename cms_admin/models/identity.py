"""Credential tables used by the local identity backend."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String

from cms_admin.core.clock import utcnow
from cms_admin.db.base import Base, new_uuid


class LocalIdentity(Base):
    """Login identity; ``hashed_password`` is NULL until an invited user sets one."""
    __tablename__ = "local_identities"

    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=True)
    email_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    user_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class LocalIdentitySession(Base):
    """Issued access token, stored by hash so every lookup hits the database."""
    __tablename__ = "local_identity_sessions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    identity_id = Column(
        String(36), ForeignKey("local_identities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
