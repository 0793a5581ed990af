"""Job posts API router (job categories and job posts)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cms_admin.core.permissions import Permissions
from cms_admin.core.security import RequirePermission
from cms_admin.db.session import get_db
from cms_admin.models.blog import PostStatus
from cms_admin.models.job_post import EmploymentType
from cms_admin.schemas.schemas import (
    ActionResponse, Actor, CategoryIn, JobCategoryOut, JobPostIn, JobPostOut, JobPostUpdate, Page,
)
from cms_admin.services.job_post_service import job_category_service, job_post_service

router = APIRouter(prefix="/job-posts", tags=["job posts"])

can_view = RequirePermission(Permissions.JOB_POSTS_VIEW)
can_manage = RequirePermission(Permissions.JOB_POSTS_MANAGE)


@router.get("/categories", response_model=ActionResponse[Page[JobCategoryOut]])
async def list_job_categories(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    result = job_category_service.list_categories(db, actor, page, limit, search)
    result["items"] = [JobCategoryOut.model_validate(c) for c in result["items"]]
    return ActionResponse(success=True, data=Page[JobCategoryOut](**result))


@router.post("/categories", response_model=ActionResponse[JobCategoryOut], status_code=201)
async def create_job_category(
    body: CategoryIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    category = job_category_service.create_category(db, actor, body.name)
    return ActionResponse(
        success=True, data=JobCategoryOut.model_validate(category), message="Category created successfully",
    )


@router.get("/categories/{category_id}", response_model=ActionResponse[JobCategoryOut])
async def get_job_category(
    category_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    category = job_category_service.get_category(db, actor, category_id)
    return ActionResponse(success=True, data=JobCategoryOut.model_validate(category))


@router.patch("/categories/{category_id}", response_model=ActionResponse[JobCategoryOut])
async def update_job_category(
    category_id: str,
    body: CategoryIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    category = job_category_service.update_category(db, actor, category_id, body.name)
    return ActionResponse(
        success=True, data=JobCategoryOut.model_validate(category), message="Category updated successfully",
    )


@router.delete("/categories/{category_id}", response_model=ActionResponse[None])
async def delete_job_category(
    category_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    job_category_service.delete_category(db, actor, category_id)
    return ActionResponse(success=True, message="Category deleted successfully")


@router.get("/posts", response_model=ActionResponse[Page[JobPostOut]])
async def list_job_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    status: Optional[PostStatus] = Query(None),
    category_id: Optional[str] = Query(None),
    employment_type: Optional[EmploymentType] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    result = job_post_service.list_posts(
        db, actor, page, limit, search,
        status=status, category_id=category_id, employment_type=employment_type,
    )
    result["items"] = [JobPostOut.model_validate(p) for p in result["items"]]
    return ActionResponse(success=True, data=Page[JobPostOut](**result))


@router.post("/posts", response_model=ActionResponse[JobPostOut], status_code=201)
async def create_job_post(
    body: JobPostIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    post = job_post_service.create_post(db, actor, **body.model_dump(exclude_unset=True))
    return ActionResponse(success=True, data=JobPostOut.model_validate(post), message="Job post created successfully")


@router.get("/posts/{post_id}", response_model=ActionResponse[JobPostOut])
async def get_job_post(
    post_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_view),
):
    post = job_post_service.get_post(db, actor, post_id)
    return ActionResponse(success=True, data=JobPostOut.model_validate(post))


@router.patch("/posts/{post_id}", response_model=ActionResponse[JobPostOut])
async def update_job_post(
    post_id: str,
    body: JobPostUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    post = job_post_service.update_post(db, actor, post_id, **body.model_dump(exclude_unset=True))
    return ActionResponse(success=True, data=JobPostOut.model_validate(post), message="Job post updated successfully")


@router.post("/posts/{post_id}/publish", response_model=ActionResponse[JobPostOut])
async def publish_job_post(
    post_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    post = job_post_service.publish_post(db, actor, post_id)
    return ActionResponse(
        success=True, data=JobPostOut.model_validate(post), message="Job post published successfully",
    )


@router.post("/posts/{post_id}/unpublish", response_model=ActionResponse[JobPostOut])
async def unpublish_job_post(
    post_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    post = job_post_service.unpublish_post(db, actor, post_id)
    return ActionResponse(
        success=True, data=JobPostOut.model_validate(post), message="Job post unpublished successfully",
    )


@router.delete("/posts/{post_id}", response_model=ActionResponse[None])
async def delete_job_post(
    post_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(can_manage),
):
    job_post_service.delete_post(db, actor, post_id)
    return ActionResponse(success=True, message="Job post deleted successfully")
