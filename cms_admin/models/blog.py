"""Blog models: categories, contributors and posts."""

import enum

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from cms_admin.core.clock import utcnow
from cms_admin.db.base import Base, new_uuid


class PostStatus(str, enum.Enum):
    draft = "draft"
    published = "published"
    unpublished = "unpublished"


class BlogCategory(Base):
    __tablename__ = "blog_categories"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(100), unique=True, nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class BlogContributor(Base):
    """Byline shown on posts; not an admin account."""
    __tablename__ = "blog_contributors"

    id = Column(String(36), primary_key=True, default=new_uuid)
    full_name = Column(String(255), nullable=False, index=True)
    position = Column(String(255), nullable=False)
    bio = Column(Text, nullable=False)
    avatar_url = Column(String(500), nullable=True)
    expertise = Column(JSON, nullable=False, default=list)  # at most 3 entries
    stats = Column(JSON, nullable=False, default=list)  # at most 3 entries
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class BlogPost(Base):
    __tablename__ = "blog_posts"

    id = Column(String(36), primary_key=True, default=new_uuid)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    seo_meta_title = Column(String(255), nullable=False, default="")
    seo_meta_description = Column(String(500), nullable=False, default="")
    cover_image_url = Column(String(500), nullable=True)
    category_id = Column(String(36), ForeignKey("blog_categories.id"), nullable=False, index=True)
    contributor_id = Column(String(36), ForeignKey("blog_contributors.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    reading_time = Column(Integer, nullable=False, default=1)  # minutes
    status = Column(
        Enum(PostStatus, name="blog_post_status", native_enum=False),
        default=PostStatus.draft,
        nullable=False,
        index=True,
    )
    published_date = Column(DateTime(timezone=True), nullable=True)
    published_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    category = relationship("BlogCategory", lazy="joined")
    contributor = relationship("BlogContributor", lazy="joined")
