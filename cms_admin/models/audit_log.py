"""Audit log model: append-only."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from cms_admin.core.clock import utcnow
from cms_admin.db.base import Base, new_uuid


class AuditLog(Base):
    """Immutable audit trail for privileged mutations and auth events.

    This table is APPEND-ONLY: rows are never updated, and only removed in
    bulk by the super-admin retention cleanup.
    """
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_uuid)
    actor_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action_type = Column(String(100), nullable=False, index=True)  # e.g. "role.update"
    target_type = Column(String(50), nullable=False, index=True)  # user, role, auth, ...
    target_id = Column(String(100), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    actor = relationship("User", lazy="joined")
