"""Role, permission and role-permission models for RBAC."""

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from cms_admin.core.clock import utcnow
from cms_admin.db.base import Base, new_uuid


class Role(Base):
    """Named bundle of permissions.

    ``is_super_admin`` roles bypass ``role_permissions`` entirely and are
    immutable; ``is_system`` roles cannot be renamed or deleted.
    """
    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    is_super_admin = Column(Boolean, default=False, nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    permissions = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class Permission(Base):
    """Catalog entry mirrored from ``cms_admin.core.permissions``."""
    __tablename__ = "permissions"

    key = Column(String(100), primary_key=True)
    label = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    group = Column(String(100), nullable=False, index=True)


class RolePermission(Base):
    """(role, permission) grant."""
    __tablename__ = "role_permissions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_key = Column(
        String(100), ForeignKey("permissions.key", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    role = relationship("Role", back_populates="permissions")

    __table_args__ = (
        UniqueConstraint("role_id", "permission_key", name="uq_role_permission"),
    )
