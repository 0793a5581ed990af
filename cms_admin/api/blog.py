"""Blog API router (categories, contributors, posts)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cms_admin.core.permissions import Permissions
from cms_admin.core.security import RequirePermission
from cms_admin.db.session import get_db
from cms_admin.models.blog import PostStatus
from cms_admin.schemas.schemas import (
    ActionResponse, Actor, BlogCategoryOut, BlogContributorIn, BlogContributorOut,
    BlogContributorUpdate, BlogPostIn, BlogPostOut, BlogPostUpdate, CategoryIn, Page,
)
from cms_admin.services.blog_service import (
    blog_category_service, blog_contributor_service, blog_post_service,
)

router = APIRouter(prefix="/blog", tags=["blog"])

can_view = RequirePermission(Permissions.BLOG_VIEW)
can_manage = RequirePermission(Permissions.BLOG_MANAGE)


# ---- Categories ----

@router.get("/categories", response_model=ActionResponse[Page[BlogCategoryOut]])
async def list_categories(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    result = blog_category_service.list_categories(db, actor, page, limit, search)
    result["items"] = [BlogCategoryOut.model_validate(c) for c in result["items"]]
    return ActionResponse(success=True, data=Page[BlogCategoryOut](**result))


@router.post("/categories", response_model=ActionResponse[BlogCategoryOut], status_code=201)
async def create_category(
    body: CategoryIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    category = blog_category_service.create_category(db, actor, body.name)
    return ActionResponse(
        success=True, data=BlogCategoryOut.model_validate(category), message="Category created successfully",
    )


@router.get("/categories/{category_id}", response_model=ActionResponse[BlogCategoryOut])
async def get_category(
    category_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    category = blog_category_service.get_category(db, actor, category_id)
    return ActionResponse(success=True, data=BlogCategoryOut.model_validate(category))


@router.patch("/categories/{category_id}", response_model=ActionResponse[BlogCategoryOut])
async def update_category(
    category_id: str,
    body: CategoryIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    category = blog_category_service.update_category(db, actor, category_id, body.name)
    return ActionResponse(
        success=True, data=BlogCategoryOut.model_validate(category), message="Category updated successfully",
    )


@router.delete("/categories/{category_id}", response_model=ActionResponse[None])
async def delete_category(
    category_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    blog_category_service.delete_category(db, actor, category_id)
    return ActionResponse(success=True, message="Category deleted successfully")


# ---- Contributors ----

@router.get("/contributors", response_model=ActionResponse[Page[BlogContributorOut]])
async def list_contributors(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    result = blog_contributor_service.list_contributors(db, actor, page, limit, search)
    result["items"] = [BlogContributorOut.model_validate(c) for c in result["items"]]
    return ActionResponse(success=True, data=Page[BlogContributorOut](**result))


@router.post("/contributors", response_model=ActionResponse[BlogContributorOut], status_code=201)
async def create_contributor(
    body: BlogContributorIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    contributor = blog_contributor_service.create_contributor(db, actor, **body.model_dump())
    return ActionResponse(
        success=True,
        data=BlogContributorOut.model_validate(contributor),
        message="Contributor created successfully",
    )


@router.get("/contributors/{contributor_id}", response_model=ActionResponse[BlogContributorOut])
async def get_contributor(
    contributor_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    contributor = blog_contributor_service.get_contributor(db, actor, contributor_id)
    return ActionResponse(success=True, data=BlogContributorOut.model_validate(contributor))


@router.patch("/contributors/{contributor_id}", response_model=ActionResponse[BlogContributorOut])
async def update_contributor(
    contributor_id: str,
    body: BlogContributorUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    contributor = blog_contributor_service.update_contributor(
        db, actor, contributor_id, **body.model_dump(exclude_unset=True),
    )
    return ActionResponse(
        success=True,
        data=BlogContributorOut.model_validate(contributor),
        message="Contributor updated successfully",
    )


@router.delete("/contributors/{contributor_id}", response_model=ActionResponse[None])
async def delete_contributor(
    contributor_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    blog_contributor_service.delete_contributor(db, actor, contributor_id)
    return ActionResponse(success=True, message="Contributor deleted successfully")


# ---- Posts ----

@router.get("/posts", response_model=ActionResponse[Page[BlogPostOut]])
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    status: Optional[PostStatus] = Query(None),
    category_id: Optional[str] = Query(None),
    contributor_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    result = blog_post_service.list_posts(
        db, actor, page, limit, search, status=status, category_id=category_id, contributor_id=contributor_id,
    )
    result["items"] = [BlogPostOut.model_validate(p) for p in result["items"]]
    return ActionResponse(success=True, data=Page[BlogPostOut](**result))


@router.post("/posts", response_model=ActionResponse[BlogPostOut], status_code=201)
async def create_post(
    body: BlogPostIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    post = blog_post_service.create_post(
        db, actor,
        title=body.title,
        content=body.content,
        category_id=body.category_id,
        contributor_id=body.contributor_id,
        seo_meta_title=body.seo_meta_title,
        seo_meta_description=body.seo_meta_description,
        cover_image_url=body.cover_image_url,
        reading_time_minutes=body.reading_time,
    )
    return ActionResponse(success=True, data=BlogPostOut.model_validate(post), message="Post created successfully")


@router.get("/posts/{post_id}", response_model=ActionResponse[BlogPostOut])
async def get_post(
    post_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    post = blog_post_service.get_post(db, actor, post_id)
    return ActionResponse(success=True, data=BlogPostOut.model_validate(post))


@router.patch("/posts/{post_id}", response_model=ActionResponse[BlogPostOut])
async def update_post(
    post_id: str,
    body: BlogPostUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    post = blog_post_service.update_post(db, actor, post_id, **body.model_dump(exclude_unset=True))
    return ActionResponse(success=True, data=BlogPostOut.model_validate(post), message="Post updated successfully")


@router.post("/posts/{post_id}/publish", response_model=ActionResponse[BlogPostOut])
async def publish_post(
    post_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    post = blog_post_service.publish_post(db, actor, post_id)
    return ActionResponse(success=True, data=BlogPostOut.model_validate(post), message="Post published successfully")


@router.post("/posts/{post_id}/unpublish", response_model=ActionResponse[BlogPostOut])
async def unpublish_post(
    post_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    post = blog_post_service.unpublish_post(db, actor, post_id)
    return ActionResponse(
        success=True, data=BlogPostOut.model_validate(post), message="Post unpublished successfully",
    )


@router.delete("/posts/{post_id}", response_model=ActionResponse[None])
async def delete_post(
    post_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    blog_post_service.delete_post(db, actor, post_id)
    return ActionResponse(success=True, message="Post deleted successfully")
