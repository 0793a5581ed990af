"""Job board models: categories and job posts."""

import enum

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from cms_admin.core.clock import utcnow
from cms_admin.db.base import Base, new_uuid
from cms_admin.models.blog import PostStatus


class EmploymentType(str, enum.Enum):
    full_time = "full-time"
    part_time = "part-time"
    contract = "contract"
    project_based = "project-based"
    freelance = "freelance"
    internship = "internship"


class ExperienceLevel(str, enum.Enum):
    entry_level = "entry-level"
    junior = "junior"
    mid_level = "mid-level"
    senior = "senior"
    lead = "lead"
    principal = "principal"
    executive = "executive"


class JobCategory(Base):
    __tablename__ = "job_categories"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class JobPost(Base):
    """A job opening. ``job_id`` (JOB-000001, ...) is assigned on creation and doubles as the slug."""
    __tablename__ = "job_posts"

    id = Column(String(36), primary_key=True, default=new_uuid)
    job_id = Column(String(20), unique=True, nullable=False, index=True)
    slug = Column(String(50), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    overview = Column(Text, nullable=True)
    category_id = Column(String(36), ForeignKey("job_categories.id"), nullable=True, index=True)
    department = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    employment_type = Column(
        Enum(EmploymentType, name="employment_type", native_enum=False,
             values_callable=lambda e: [m.value for m in e]),
        default=EmploymentType.full_time,
        nullable=False,
    )
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    salary_currency = Column(String(3), nullable=False, default="USD")
    salary_period = Column(String(20), nullable=False, default="yearly")
    salary_custom_text = Column(String(255), nullable=True)
    responsibilities = Column(Text, nullable=False, default="")
    must_have_skills = Column(Text, nullable=False, default="")
    preferred_skills = Column(Text, nullable=False, default="")
    benefits = Column(Text, nullable=False, default="")
    skills = Column(JSON, nullable=False, default=list)
    experience_level = Column(
        Enum(ExperienceLevel, name="experience_level", native_enum=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )
    status = Column(
        Enum(PostStatus, name="job_post_status", native_enum=False),
        default=PostStatus.draft,
        nullable=False,
        index=True,
    )
    published_at = Column(DateTime(timezone=True), nullable=True)
    custom_posted_date = Column(DateTime(timezone=True), nullable=True)
    seo_meta_title = Column(String(255), nullable=True)
    seo_meta_description = Column(String(500), nullable=True)
    published_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    category = relationship("JobCategory", lazy="joined")
