"""Admin page view-models.

Mounted at ``/admin`` without the ``/api`` prefix, behind
``AdminRouteGuardMiddleware``; by the time a handler runs the guard has
already resolved the caller onto ``request.state.actor``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from cms_admin.core.config import settings
from cms_admin.core.exceptions import AuthenticationError, ForbiddenError, ResourceNotFoundError
from cms_admin.core.permissions import find_menu_item
from cms_admin.core.route_guard import DASHBOARD_PATH, LOGIN_PATH
from cms_admin.db.session import get_db
from cms_admin.schemas.schemas import Actor
from cms_admin.services.auth_service import auth_service
from cms_admin.services.authorization_service import authorization_service

router = APIRouter(prefix="/admin", tags=["admin pages"])


def page_actor(request: Request) -> Actor:
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise AuthenticationError("Not authenticated")
    authorization_service.require_active(actor)
    return actor


@router.get("")
async def dashboard(
    actor: Actor = Depends(page_actor),
    db: Session = Depends(get_db),
):
    view = auth_service.me(db, actor)
    return {"page": "dashboard", "title": settings.APP_NAME, **view}


@router.get("/login")
async def login_page(
    message: Optional[str] = Query(None),
    redirect: Optional[str] = Query(None),
):
    # Only same-area paths are honored as return targets
    if not redirect or not redirect.startswith(DASHBOARD_PATH) or redirect.startswith("//"):
        redirect = DASHBOARD_PATH
    return {
        "page": "login",
        "title": "Sign in",
        "message": message,
        "redirect": redirect,
        "forgot_password_path": "/admin/forgot-password",
    }


@router.get("/forgot-password")
async def forgot_password_page(message: Optional[str] = Query(None)):
    return {
        "page": "forgot-password",
        "title": "Reset your password",
        "message": message,
        "login_path": LOGIN_PATH,
    }


@router.get("/{page_path:path}")
async def admin_page(
    page_path: str,
    actor: Actor = Depends(page_actor),
    db: Session = Depends(get_db),
):
    """Any page listed in the navigation menu, gated by its permission."""
    path = f"{DASHBOARD_PATH}/{page_path}".rstrip("/")
    item = find_menu_item(path)
    if item is None:
        raise ResourceNotFoundError("Page not found")
    if item.permission_key and not authorization_service.has_permission(db, actor, item.permission_key):
        raise ForbiddenError("You do not have access to this page")

    view = auth_service.me(db, actor)
    return {"page": item.id, "title": item.label, "permission_key": item.permission_key, **view}
