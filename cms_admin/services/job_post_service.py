"""Job board: job categories and job posts.

Reads need ``job_posts.view``, writes ``job_posts.manage``. Every post gets
a sequential ``job_id`` (JOB-000001, ...) that is also its slug, so renaming
a post never breaks its public URL.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cms_admin.core.clock import utcnow
from cms_admin.core.exceptions import ResourceConflictError, ResourceNotFoundError, ValidationError
from cms_admin.core.permissions import Permissions
from cms_admin.core.text import slugify, strip_html
from cms_admin.models.blog import PostStatus
from cms_admin.models.job_post import EmploymentType, ExperienceLevel, JobCategory, JobPost
from cms_admin.schemas.schemas import Actor
from cms_admin.services.audit_service import AuditActions, audit_service
from cms_admin.services.authorization_service import authorization_service
from cms_admin.services.content import apply_changes, audit_changes, paginate, required_text

logger = logging.getLogger("cms_admin")

JOB_ID_PREFIX = "JOB-"

# Fields a job post accepts on create/update besides title and category
POST_FIELDS = (
    "overview", "department", "location", "employment_type",
    "salary_min", "salary_max", "salary_currency", "salary_period", "salary_custom_text",
    "responsibilities", "must_have_skills", "preferred_skills", "benefits", "skills",
    "experience_level", "custom_posted_date", "seo_meta_title", "seo_meta_description",
)


def split_lines(text: Union[str, List[str], None]) -> List[str]:
    """Skills arrive as one per line or as a list; blanks are dropped."""
    if text is None:
        return []
    lines = text.split("\n") if isinstance(text, str) else text
    return [line.strip() for line in lines if line and line.strip()]


def publish_problems(post: JobPost) -> List[str]:
    """Everything missing before ``post`` may be published; empty when it is ready."""
    errors = []
    if not (post.title or "").strip():
        errors.append("Title is required")
    if not (post.overview or "").strip():
        errors.append("Position overview is required")
    if not post.employment_type:
        errors.append("Employment type is required")
    if not (post.location or "").strip():
        errors.append("Location is required")
    if not post.category_id:
        errors.append("Category is required")
    structured_salary = post.salary_min is not None and post.salary_max is not None
    if not structured_salary and not (post.salary_custom_text or "").strip():
        errors.append("Salary information is required")
    for field, label in (
        ("responsibilities", "Responsibilities"),
        ("must_have_skills", "Must have skills"),
        ("preferred_skills", "Preferred skills"),
    ):
        if not strip_html(getattr(post, field)):
            errors.append(f"{label} content is required")
    return errors


class JobCategoryService:

    @staticmethod
    def list_categories(
        db: Session,
        actor: Actor,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Categories by name, each with its ``post_count``."""
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_VIEW)
        query = db.query(JobCategory)
        if search:
            query = query.filter(JobCategory.name.ilike(f"%{search.strip()}%"))
        result = paginate(query.order_by(JobCategory.name), page, limit)

        ids = [c.id for c in result["items"]]
        counts = dict(
            db.query(JobPost.category_id, func.count(JobPost.id))
            .filter(JobPost.category_id.in_(ids))
            .group_by(JobPost.category_id)
            .all()
        ) if ids else {}
        for category in result["items"]:
            category.post_count = counts.get(category.id, 0)
        return result

    @staticmethod
    def _get(db: Session, category_id: str) -> JobCategory:
        category = db.query(JobCategory).filter(JobCategory.id == category_id).first()
        if not category:
            raise ResourceNotFoundError("Category not found")
        return category

    @staticmethod
    def get_category(db: Session, actor: Actor, category_id: str) -> JobCategory:
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_VIEW)
        return JobCategoryService._get(db, category_id)

    @staticmethod
    def _ensure_unique(db: Session, name: str, slug: str, exclude_id: Optional[str] = None) -> None:
        query = db.query(JobCategory.id).filter(or_(JobCategory.name == name, JobCategory.slug == slug))
        if exclude_id:
            query = query.filter(JobCategory.id != exclude_id)
        if query.first():
            raise ResourceConflictError("Category name already exists")

    @staticmethod
    def create_category(db: Session, actor: Actor, name: str) -> JobCategory:
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_MANAGE)
        name = required_text(name, "Category name is required")
        slug = slugify(name)
        if not slug:
            raise ValidationError("Category name must contain letters or digits")
        JobCategoryService._ensure_unique(db, name, slug)

        category = JobCategory(name=name, slug=slug, created_by=actor.id, updated_by=actor.id)
        db.add(category)
        db.commit()
        db.refresh(category)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.JOB_CATEGORY_CREATED,
            target_type="job_category",
            target_id=category.id,
            metadata={"category_name": name, "slug": slug},
        )
        return category

    @staticmethod
    def update_category(db: Session, actor: Actor, category_id: str, name: str) -> JobCategory:
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_MANAGE)
        category = JobCategoryService._get(db, category_id)
        name = required_text(name, "Category name is required")
        if name == category.name:
            return category
        slug = slugify(name)
        if not slug:
            raise ValidationError("Category name must contain letters or digits")
        JobCategoryService._ensure_unique(db, name, slug, exclude_id=category.id)

        changes = apply_changes(category, {"name": name, "slug": slug})
        category.updated_by = actor.id
        db.commit()
        db.refresh(category)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.JOB_CATEGORY_UPDATED,
            target_type="job_category",
            target_id=category.id,
            metadata=changes,
        )
        return category

    @staticmethod
    def delete_category(db: Session, actor: Actor, category_id: str) -> None:
        """Blocked while published posts use the category; other posts lose it."""
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_MANAGE)
        category = JobCategoryService._get(db, category_id)
        published = (
            db.query(JobPost.id)
            .filter(JobPost.category_id == category_id, JobPost.status == PostStatus.published)
            .first()
        )
        if published:
            raise ResourceConflictError("Cannot delete category with published job posts")

        name = category.name
        detached = (
            db.query(JobPost)
            .filter(JobPost.category_id == category_id)
            .update({JobPost.category_id: None}, synchronize_session=False)
        )
        db.delete(category)
        db.commit()

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.JOB_CATEGORY_DELETED,
            target_type="job_category",
            target_id=category_id,
            metadata={"category_name": name, "detached_posts": detached},
        )


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize the optional job post fields present in ``fields``."""
    cleaned: Dict[str, Any] = {}
    for key in POST_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if key == "skills":
            value = split_lines(value)
        elif key == "employment_type":
            if value is None:
                raise ValidationError("Employment type is required")
            try:
                value = EmploymentType(value)
            except ValueError:
                raise ValidationError(f"Unknown employment type '{value}'")
        elif key == "experience_level":
            try:
                value = ExperienceLevel(value) if value else None
            except ValueError:
                raise ValidationError(f"Unknown experience level '{value}'")
        elif key in ("responsibilities", "must_have_skills", "preferred_skills", "benefits"):
            value = value or ""
        elif isinstance(value, str):
            value = value.strip() or None
        cleaned[key] = value
    if "salary_currency" in cleaned and not cleaned["salary_currency"]:
        cleaned["salary_currency"] = "USD"
    if "salary_period" in cleaned and not cleaned["salary_period"]:
        cleaned["salary_period"] = "yearly"
    return cleaned


def _check_salary(post: JobPost) -> None:
    for value in (post.salary_min, post.salary_max):
        if value is not None and value < 0:
            raise ValidationError("Salary cannot be negative")
    if post.salary_min is not None and post.salary_max is not None and post.salary_min > post.salary_max:
        raise ValidationError("Minimum salary cannot exceed maximum salary")


class JobPostService:

    @staticmethod
    def list_posts(
        db: Session,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[PostStatus] = None,
        category_id: Optional[str] = None,
        employment_type: Optional[EmploymentType] = None,
    ) -> Dict[str, Any]:
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_VIEW)
        query = db.query(JobPost)
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                JobPost.title.ilike(term),
                JobPost.job_id.ilike(term),
                JobPost.location.ilike(term),
                JobPost.department.ilike(term),
            ))
        if status:
            query = query.filter(JobPost.status == status)
        if category_id:
            query = query.filter(JobPost.category_id == category_id)
        if employment_type:
            query = query.filter(JobPost.employment_type == employment_type)
        return paginate(query.order_by(JobPost.created_at.desc()), page, limit)

    @staticmethod
    def _get(db: Session, post_id: str) -> JobPost:
        post = db.query(JobPost).filter(JobPost.id == post_id).first()
        if not post:
            raise ResourceNotFoundError("Job post not found")
        return post

    @staticmethod
    def get_post(db: Session, actor: Actor, post_id: str) -> JobPost:
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_VIEW)
        return JobPostService._get(db, post_id)

    @staticmethod
    def list_published(
        db: Session,
        page: int = 1,
        limit: int = 10,
        category_id: Optional[str] = None,
        employment_type: Optional[EmploymentType] = None,
    ) -> Dict[str, Any]:
        """Public listing, newest publication first."""
        query = db.query(JobPost).filter(JobPost.status == PostStatus.published)
        if category_id:
            query = query.filter(JobPost.category_id == category_id)
        if employment_type:
            query = query.filter(JobPost.employment_type == employment_type)
        query = query.order_by(JobPost.published_at.desc(), JobPost.created_at.desc())
        return paginate(query, page, limit)

    @staticmethod
    def get_published_by_slug(db: Session, slug: str) -> JobPost:
        """Public read by slug or job id; anything not published is missing."""
        post = (
            db.query(JobPost)
            .filter(
                or_(JobPost.slug == slug.lower(), JobPost.job_id == slug.upper()),
                JobPost.status == PostStatus.published,
            )
            .first()
        )
        if not post:
            raise ResourceNotFoundError("Job post not found")
        return post

    @staticmethod
    def next_job_id(db: Session) -> str:
        # Zero-padded, so the lexical maximum is the numeric one
        last = db.query(func.max(JobPost.job_id)).scalar()
        number = int(last[len(JOB_ID_PREFIX):]) + 1 if last else 1
        return f"{JOB_ID_PREFIX}{number:06d}"

    @staticmethod
    def create_post(
        db: Session,
        actor: Actor,
        title: str,
        category_id: Optional[str] = None,
        **fields: Any,
    ) -> JobPost:
        """Create a draft job post. Optional fields are those in ``POST_FIELDS``."""
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_MANAGE)
        title = required_text(title, "Title is required")
        if category_id:
            JobCategoryService._get(db, category_id)

        job_id = JobPostService.next_job_id(db)
        post = JobPost(
            job_id=job_id,
            slug=job_id.lower(),
            title=title,
            category_id=category_id or None,
            status=PostStatus.draft,
            created_by=actor.id,
            updated_by=actor.id,
            **_clean_fields(fields),
        )
        _check_salary(post)
        db.add(post)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("Job id %s was taken concurrently", job_id)
            raise ResourceConflictError("Another job post was created at the same time. Please try again.")
        db.refresh(post)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.JOB_POST_CREATED,
            target_type="job_post",
            target_id=post.id,
            metadata={"job_id": job_id, "title": title},
        )
        logger.info("Job post %s (%s) created by %s", post.id, job_id, actor.id)
        return post

    @staticmethod
    def update_post(db: Session, actor: Actor, post_id: str, **fields: Any) -> JobPost:
        """Partial update; a published post must still satisfy the publish checks."""
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_MANAGE)
        post = JobPostService._get(db, post_id)

        updates = _clean_fields(fields)
        if fields.get("title") is not None:
            updates["title"] = required_text(fields["title"], "Title is required")
        if "category_id" in fields:
            category_id = fields["category_id"] or None
            if category_id:
                JobCategoryService._get(db, category_id)
            updates["category_id"] = category_id

        changes = apply_changes(post, updates)
        if not changes:
            return post
        try:
            _check_salary(post)
            if post.status == PostStatus.published:
                problems = publish_problems(post)
                if problems:
                    raise ValidationError("; ".join(problems))
        except ValidationError:
            db.rollback()
            raise

        post.updated_by = actor.id
        db.commit()
        db.refresh(post)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.JOB_POST_UPDATED,
            target_type="job_post",
            target_id=post.id,
            metadata={"job_id": post.job_id, "changes": audit_changes(changes)},
        )
        return post

    @staticmethod
    def publish_post(db: Session, actor: Actor, post_id: str) -> JobPost:
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_MANAGE)
        post = JobPostService._get(db, post_id)
        if post.status == PostStatus.published:
            return post
        problems = publish_problems(post)
        if problems:
            raise ValidationError("; ".join(problems))

        post.status = PostStatus.published
        post.published_at = post.published_at or utcnow()
        post.published_by = actor.id
        db.commit()
        db.refresh(post)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.JOB_POST_PUBLISHED,
            target_type="job_post",
            target_id=post.id,
            metadata={"job_id": post.job_id, "title": post.title},
        )
        return post

    @staticmethod
    def unpublish_post(db: Session, actor: Actor, post_id: str) -> JobPost:
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_MANAGE)
        post = JobPostService._get(db, post_id)
        if post.status != PostStatus.published:
            raise ValidationError("Only published job posts can be unpublished")

        post.status = PostStatus.unpublished
        post.updated_by = actor.id
        db.commit()
        db.refresh(post)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.JOB_POST_UNPUBLISHED,
            target_type="job_post",
            target_id=post.id,
            metadata={"job_id": post.job_id, "title": post.title},
        )
        return post

    @staticmethod
    def delete_post(db: Session, actor: Actor, post_id: str) -> None:
        authorization_service.require_permission(db, actor, Permissions.JOB_POSTS_MANAGE)
        post = JobPostService._get(db, post_id)
        if post.status == PostStatus.published:
            raise ResourceConflictError("Cannot delete published job posts. Unpublish first.")

        job_id, title = post.job_id, post.title
        db.delete(post)
        db.commit()

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.JOB_POST_DELETED,
            target_type="job_post",
            target_id=post_id,
            metadata={"job_id": job_id, "title": title},
        )


job_category_service = JobCategoryService()
job_post_service = JobPostService()
