"""Blog content: categories, contributors and posts.

Reads need ``blog.view``, every write ``blog.manage``. Posts move
draft -> published -> unpublished (-> published again); only published
posts are served publicly and a published post must be unpublished before
it can be deleted.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cms_admin.core.clock import utcnow
from cms_admin.core.exceptions import ResourceConflictError, ResourceNotFoundError, ValidationError
from cms_admin.core.permissions import Permissions
from cms_admin.core.text import reading_time, unique_slug
from cms_admin.models.blog import BlogCategory, BlogContributor, BlogPost, PostStatus
from cms_admin.schemas.schemas import Actor
from cms_admin.services.audit_service import AuditActions, audit_service
from cms_admin.services.authorization_service import authorization_service
from cms_admin.services.content import apply_changes, audit_changes, paginate, plural, required_text

logger = logging.getLogger("cms_admin")

SEO_TITLE_MAX = 60
SEO_DESCRIPTION_MAX = 160
MAX_CONTRIBUTOR_ITEMS = 3


class BlogCategoryService:

    @staticmethod
    def list_categories(
        db: Session,
        actor: Actor,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        authorization_service.require_permission(db, actor, Permissions.BLOG_VIEW)
        query = db.query(BlogCategory)
        if search:
            query = query.filter(BlogCategory.name.ilike(f"%{search.strip()}%"))
        return paginate(query.order_by(BlogCategory.name), page, limit)

    @staticmethod
    def _get(db: Session, category_id: str) -> BlogCategory:
        category = db.query(BlogCategory).filter(BlogCategory.id == category_id).first()
        if not category:
            raise ResourceNotFoundError("Category not found")
        return category

    @staticmethod
    def get_category(db: Session, actor: Actor, category_id: str) -> BlogCategory:
        authorization_service.require_permission(db, actor, Permissions.BLOG_VIEW)
        return BlogCategoryService._get(db, category_id)

    @staticmethod
    def _ensure_unique(db: Session, name: str, exclude_id: Optional[str] = None) -> None:
        query = db.query(BlogCategory.id).filter(BlogCategory.name == name)
        if exclude_id:
            query = query.filter(BlogCategory.id != exclude_id)
        if query.first():
            raise ResourceConflictError("A category with this name already exists")

    @staticmethod
    def create_category(db: Session, actor: Actor, name: str) -> BlogCategory:
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        name = required_text(name, "Category name is required")
        BlogCategoryService._ensure_unique(db, name)

        category = BlogCategory(name=name, created_by=actor.id, updated_by=actor.id)
        db.add(category)
        db.commit()
        db.refresh(category)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_CATEGORY_CREATED,
            target_type="blog_category",
            target_id=category.id,
            metadata={"category_name": name},
        )
        return category

    @staticmethod
    def update_category(db: Session, actor: Actor, category_id: str, name: str) -> BlogCategory:
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        category = BlogCategoryService._get(db, category_id)
        name = required_text(name, "Category name is required")
        if name == category.name:
            return category
        BlogCategoryService._ensure_unique(db, name, exclude_id=category.id)

        changes = {"name": {"from": category.name, "to": name}}
        category.name = name
        category.updated_by = actor.id
        db.commit()
        db.refresh(category)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_CATEGORY_UPDATED,
            target_type="blog_category",
            target_id=category.id,
            metadata=changes,
        )
        return category

    @staticmethod
    def delete_category(db: Session, actor: Actor, category_id: str) -> None:
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        category = BlogCategoryService._get(db, category_id)
        _ensure_no_posts(db, BlogPost.category_id == category_id, "category")

        name = category.name
        db.delete(category)
        db.commit()

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_CATEGORY_DELETED,
            target_type="blog_category",
            target_id=category_id,
            metadata={"category_name": name},
        )


def _ensure_no_posts(db: Session, condition: Any, noun: str) -> None:
    """Published posts block deletion outright; drafts still hold the reference."""
    published = (
        db.query(BlogPost.id)
        .filter(condition, BlogPost.status == PostStatus.published)
        .count()
    )
    if published:
        raise ResourceConflictError(f"Cannot delete {noun} with {plural(published, 'published post')}")
    remaining = db.query(BlogPost.id).filter(condition).count()
    if remaining:
        raise ResourceConflictError(
            f"This {noun} is used by {plural(remaining, 'post')}. Reassign them before deleting."
        )


def _validate_items(items: Optional[List[str]], label: str) -> List[str]:
    cleaned = [item.strip() for item in (items or []) if item and item.strip()]
    if len(cleaned) > MAX_CONTRIBUTOR_ITEMS:
        raise ValidationError(f"{label} cannot exceed {MAX_CONTRIBUTOR_ITEMS} items")
    return cleaned


class BlogContributorService:

    @staticmethod
    def list_contributors(
        db: Session,
        actor: Actor,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        authorization_service.require_permission(db, actor, Permissions.BLOG_VIEW)
        query = db.query(BlogContributor)
        if search:
            query = query.filter(BlogContributor.full_name.ilike(f"%{search.strip()}%"))
        return paginate(query.order_by(BlogContributor.full_name), page, limit)

    @staticmethod
    def _get(db: Session, contributor_id: str) -> BlogContributor:
        contributor = db.query(BlogContributor).filter(BlogContributor.id == contributor_id).first()
        if not contributor:
            raise ResourceNotFoundError("Contributor not found")
        return contributor

    @staticmethod
    def get_contributor(db: Session, actor: Actor, contributor_id: str) -> BlogContributor:
        authorization_service.require_permission(db, actor, Permissions.BLOG_VIEW)
        return BlogContributorService._get(db, contributor_id)

    @staticmethod
    def create_contributor(
        db: Session,
        actor: Actor,
        full_name: str,
        position: str,
        bio: str,
        avatar_url: Optional[str] = None,
        expertise: Optional[List[str]] = None,
        stats: Optional[List[str]] = None,
    ) -> BlogContributor:
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        contributor = BlogContributor(
            full_name=required_text(full_name, "Full name is required"),
            position=required_text(position, "Position is required"),
            bio=required_text(bio, "Bio is required"),
            avatar_url=avatar_url or None,
            expertise=_validate_items(expertise, "Expertise"),
            stats=_validate_items(stats, "Stats"),
            created_by=actor.id,
            updated_by=actor.id,
        )
        db.add(contributor)
        db.commit()
        db.refresh(contributor)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_CONTRIBUTOR_CREATED,
            target_type="blog_contributor",
            target_id=contributor.id,
            metadata={"contributor_name": contributor.full_name},
        )
        return contributor

    @staticmethod
    def update_contributor(db: Session, actor: Actor, contributor_id: str, **fields: Any) -> BlogContributor:
        """Partial update; only the keyword arguments given are touched."""
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        contributor = BlogContributorService._get(db, contributor_id)

        updates: Dict[str, Any] = {}
        for key, message in (
            ("full_name", "Full name is required"),
            ("position", "Position is required"),
            ("bio", "Bio is required"),
        ):
            if fields.get(key) is not None:
                updates[key] = required_text(fields[key], message)
        if "avatar_url" in fields:
            updates["avatar_url"] = fields["avatar_url"] or None
        if fields.get("expertise") is not None:
            updates["expertise"] = _validate_items(fields["expertise"], "Expertise")
        if fields.get("stats") is not None:
            updates["stats"] = _validate_items(fields["stats"], "Stats")

        changes = apply_changes(contributor, updates)
        if not changes:
            return contributor

        contributor.updated_by = actor.id
        db.commit()
        db.refresh(contributor)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_CONTRIBUTOR_UPDATED,
            target_type="blog_contributor",
            target_id=contributor.id,
            metadata=audit_changes(changes),
        )
        return contributor

    @staticmethod
    def delete_contributor(db: Session, actor: Actor, contributor_id: str) -> None:
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        contributor = BlogContributorService._get(db, contributor_id)
        _ensure_no_posts(db, BlogPost.contributor_id == contributor_id, "contributor")

        name = contributor.full_name
        db.delete(contributor)
        db.commit()

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_CONTRIBUTOR_DELETED,
            target_type="blog_contributor",
            target_id=contributor_id,
            metadata={"contributor_name": name},
        )


def publish_problem(post: BlogPost) -> Optional[str]:
    """Why ``post`` cannot be published yet, or None when it can."""
    if not (post.title or "").strip():
        return "Title is required"
    if not (post.content or "").strip():
        return "Content is required"
    if not (post.cover_image_url or "").strip():
        return "Cover image is required for publishing"
    if not post.category_id:
        return "Category is required"
    if not post.contributor_id:
        return "Contributor is required"
    if len(post.seo_meta_title or "") > SEO_TITLE_MAX:
        return f"SEO title exceeds {SEO_TITLE_MAX} characters"
    if len(post.seo_meta_description or "") > SEO_DESCRIPTION_MAX:
        return f"SEO description exceeds {SEO_DESCRIPTION_MAX} characters"
    return None


class BlogPostService:

    @staticmethod
    def list_posts(
        db: Session,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[PostStatus] = None,
        category_id: Optional[str] = None,
        contributor_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        authorization_service.require_permission(db, actor, Permissions.BLOG_VIEW)
        query = db.query(BlogPost)
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(or_(BlogPost.title.ilike(term), BlogPost.seo_meta_description.ilike(term)))
        if status:
            query = query.filter(BlogPost.status == status)
        if category_id:
            query = query.filter(BlogPost.category_id == category_id)
        if contributor_id:
            query = query.filter(BlogPost.contributor_id == contributor_id)
        return paginate(query.order_by(BlogPost.created_at.desc()), page, limit)

    @staticmethod
    def _get(db: Session, post_id: str) -> BlogPost:
        post = db.query(BlogPost).filter(BlogPost.id == post_id).first()
        if not post:
            raise ResourceNotFoundError("Post not found")
        return post

    @staticmethod
    def get_post(db: Session, actor: Actor, post_id: str) -> BlogPost:
        authorization_service.require_permission(db, actor, Permissions.BLOG_VIEW)
        return BlogPostService._get(db, post_id)

    @staticmethod
    def list_published(
        db: Session,
        page: int = 1,
        limit: int = 10,
        category_id: Optional[str] = None,
        contributor_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Public listing, newest publication first."""
        query = db.query(BlogPost).filter(BlogPost.status == PostStatus.published)
        if category_id:
            query = query.filter(BlogPost.category_id == category_id)
        if contributor_id:
            query = query.filter(BlogPost.contributor_id == contributor_id)
        query = query.order_by(BlogPost.published_date.desc(), BlogPost.created_at.desc())
        return paginate(query, page, limit)

    @staticmethod
    def get_published_by_slug(db: Session, slug: str) -> BlogPost:
        """Public read: drafts and unpublished posts are reported as missing."""
        post = (
            db.query(BlogPost)
            .filter(BlogPost.slug == slug, BlogPost.status == PostStatus.published)
            .first()
        )
        if not post:
            raise ResourceNotFoundError("Post not found")
        return post

    @staticmethod
    def create_post(
        db: Session,
        actor: Actor,
        title: str,
        content: str,
        category_id: str,
        contributor_id: str,
        seo_meta_title: str = "",
        seo_meta_description: str = "",
        cover_image_url: Optional[str] = None,
        reading_time_minutes: Optional[int] = None,
    ) -> BlogPost:
        """Create a draft; publishing is a separate step with its own checks."""
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        title = required_text(title, "Title is required")
        content = required_text(content, "Content is required")
        if not category_id:
            raise ValidationError("Category is required")
        if not contributor_id:
            raise ValidationError("Contributor is required")
        BlogCategoryService._get(db, category_id)
        BlogContributorService._get(db, contributor_id)

        post = BlogPost(
            title=title,
            slug=unique_slug(db, BlogPost, title),
            content=content,
            category_id=category_id,
            contributor_id=contributor_id,
            seo_meta_title=(seo_meta_title or "").strip(),
            seo_meta_description=(seo_meta_description or "").strip(),
            cover_image_url=cover_image_url or None,
            reading_time=reading_time_minutes or reading_time(content),
            status=PostStatus.draft,
            created_by=actor.id,
            updated_by=actor.id,
        )
        db.add(post)
        db.commit()
        db.refresh(post)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_POST_CREATED,
            target_type="blog_post",
            target_id=post.id,
            metadata={"post_title": post.title, "status": post.status.value},
        )
        logger.info("Blog post %s created by %s", post.id, actor.id)
        return post

    @staticmethod
    def update_post(db: Session, actor: Actor, post_id: str, **fields: Any) -> BlogPost:
        """Partial update. A new title re-derives the slug; new content the reading time."""
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        post = BlogPostService._get(db, post_id)

        updates: Dict[str, Any] = {}
        if fields.get("title") is not None:
            updates["title"] = required_text(fields["title"], "Title is required")
            if updates["title"] != post.title:
                updates["slug"] = unique_slug(db, BlogPost, updates["title"], exclude_id=post.id)
        if fields.get("content") is not None:
            updates["content"] = required_text(fields["content"], "Content is required")
            if fields.get("reading_time") is None:
                updates["reading_time"] = reading_time(updates["content"])
        if fields.get("reading_time") is not None:
            updates["reading_time"] = fields["reading_time"]
        if fields.get("category_id") is not None:
            updates["category_id"] = BlogCategoryService._get(db, fields["category_id"]).id
        if fields.get("contributor_id") is not None:
            updates["contributor_id"] = BlogContributorService._get(db, fields["contributor_id"]).id
        for key in ("seo_meta_title", "seo_meta_description"):
            if fields.get(key) is not None:
                updates[key] = fields[key].strip()
        if "cover_image_url" in fields:
            updates["cover_image_url"] = fields["cover_image_url"] or None

        changes = apply_changes(post, updates)
        if not changes:
            return post
        if post.status == PostStatus.published:
            problem = publish_problem(post)
            if problem:
                db.rollback()
                raise ValidationError(problem)

        post.updated_by = actor.id
        db.commit()
        db.refresh(post)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_POST_UPDATED,
            target_type="blog_post",
            target_id=post.id,
            metadata={"post_title": post.title, "changes": audit_changes(changes)},
        )
        return post

    @staticmethod
    def publish_post(db: Session, actor: Actor, post_id: str) -> BlogPost:
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        post = BlogPostService._get(db, post_id)
        if post.status == PostStatus.published:
            return post
        problem = publish_problem(post)
        if problem:
            raise ValidationError(problem)

        post.status = PostStatus.published
        # Republishing keeps the original publication date
        post.published_date = post.published_date or utcnow()
        post.published_by = actor.id
        db.commit()
        db.refresh(post)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_POST_PUBLISHED,
            target_type="blog_post",
            target_id=post.id,
            metadata={"post_title": post.title},
        )
        return post

    @staticmethod
    def unpublish_post(db: Session, actor: Actor, post_id: str) -> BlogPost:
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        post = BlogPostService._get(db, post_id)
        if post.status != PostStatus.published:
            raise ValidationError("Only published posts can be unpublished")

        post.status = PostStatus.unpublished
        post.updated_by = actor.id
        db.commit()
        db.refresh(post)

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_POST_UNPUBLISHED,
            target_type="blog_post",
            target_id=post.id,
            metadata={"post_title": post.title},
        )
        return post

    @staticmethod
    def delete_post(db: Session, actor: Actor, post_id: str) -> None:
        authorization_service.require_permission(db, actor, Permissions.BLOG_MANAGE)
        post = BlogPostService._get(db, post_id)
        if post.status == PostStatus.published:
            raise ResourceConflictError("Cannot delete published posts. Unpublish first.")

        title = post.title
        db.delete(post)
        db.commit()

        audit_service.log(
            db,
            actor_id=actor.id,
            action_type=AuditActions.BLOG_POST_DELETED,
            target_type="blog_post",
            target_id=post_id,
            metadata={"post_title": title},
        )


blog_category_service = BlogCategoryService()
blog_contributor_service = BlogContributorService()
blog_post_service = BlogPostService()
