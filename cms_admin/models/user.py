"""User profile model."""

import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import relationship

from cms_admin.core.clock import utcnow
from cms_admin.db.base import Base


class UserStatus(str, enum.Enum):
    invited = "invited"
    active = "active"
    inactive = "inactive"
    deleted = "deleted"


class User(Base):
    """Admin panel profile; ``id`` is the identity service's user id."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    status = Column(
        Enum(UserStatus, name="user_status", native_enum=False),
        default=UserStatus.active,
        nullable=False,
        index=True,
    )
    role_id = Column(String(36), ForeignKey("roles.id"), nullable=False, index=True)
    avatar_url = Column(String(500), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    role = relationship("Role", lazy="joined")
