"""Allowed domain model (origins permitted to call the public content API)."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String

from cms_admin.core.clock import utcnow
from cms_admin.db.base import Base, new_uuid


class AllowedDomain(Base):
    __tablename__ = "allowed_domains"

    id = Column(String(36), primary_key=True, default=new_uuid)
    domain = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
