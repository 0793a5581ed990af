"""Invitation model."""

from sqlalchemy import Column, DateTime, ForeignKey, String

from cms_admin.core.clock import utcnow
from cms_admin.db.base import Base, new_uuid


class Invitation(Base):
    """Pending invitation; only the keyed hash of the raw token is stored.

    Single use: a row with ``accepted_at`` set never matches a token lookup.
    """
    __tablename__ = "invitations"

    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    invited_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
