"""Public content API: published blog and job posts for allowed origins.

No login; the caller's ``Origin`` header must match an active allowed
domain. Drafts and unpublished posts are never returned.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from cms_admin.core.config import settings
from cms_admin.core.exceptions import ForbiddenError
from cms_admin.core.rate_limiter import limiter
from cms_admin.db.session import get_db
from cms_admin.models.job_post import EmploymentType
from cms_admin.schemas.schemas import ActionResponse, JobPostOut, Page, PublicBlogPostOut
from cms_admin.services.allowed_domain_service import allowed_domain_service
from cms_admin.services.blog_service import blog_post_service
from cms_admin.services.job_post_service import job_post_service


def require_allowed_origin(request: Request, db: Session = Depends(get_db)) -> str:
    origin = request.headers.get("origin")
    if not allowed_domain_service.is_origin_allowed(db, origin):
        raise ForbiddenError("Access denied. Domain not authorized.")
    return origin


router = APIRouter(prefix="/public", tags=["public"], dependencies=[Depends(require_allowed_origin)])


@router.get("/blog/posts", response_model=ActionResponse[Page[PublicBlogPostOut]])
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def list_blog_posts(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    category_id: Optional[str] = Query(None),
    contributor_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    result = blog_post_service.list_published(db, page, limit, category_id, contributor_id)
    result["items"] = [PublicBlogPostOut.model_validate(p) for p in result["items"]]
    return ActionResponse(success=True, data=Page[PublicBlogPostOut](**result))


@router.get("/blog/posts/{slug}", response_model=ActionResponse[PublicBlogPostOut])
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def get_blog_post(request: Request, slug: str, db: Session = Depends(get_db)):
    post = blog_post_service.get_published_by_slug(db, slug)
    return ActionResponse(success=True, data=PublicBlogPostOut.model_validate(post))


@router.get("/job-posts", response_model=ActionResponse[Page[JobPostOut]])
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def list_job_posts(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    category_id: Optional[str] = Query(None),
    employment_type: Optional[EmploymentType] = Query(None),
    db: Session = Depends(get_db),
):
    result = job_post_service.list_published(db, page, limit, category_id, employment_type)
    result["items"] = [JobPostOut.model_validate(p) for p in result["items"]]
    return ActionResponse(success=True, data=Page[JobPostOut](**result))


@router.get("/job-posts/{slug}", response_model=ActionResponse[JobPostOut])
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def get_job_post(request: Request, slug: str, db: Session = Depends(get_db)):
    post = job_post_service.get_published_by_slug(db, slug)
    return ActionResponse(success=True, data=JobPostOut.model_validate(post))
