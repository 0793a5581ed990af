"""Auth API router: login, logout, password recovery/setup, me."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from cms_admin.core.config import settings
from cms_admin.core.rate_limiter import limiter
from cms_admin.core.security import get_access_token, get_current_actor, get_identity
from cms_admin.db.session import get_db
from cms_admin.identity.base import IdentityProvider
from cms_admin.schemas.schemas import (
    ActionResponse, Actor, ForgotPasswordRequest, LoginRequest, MeResponse,
    PasswordRequest, TokenResponse,
)
from cms_admin.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=ActionResponse[TokenResponse])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
):
    """Sign in and set the session cookie."""
    result = await auth_service.login(db, identity, body.email, body.password, request)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        result["access_token"],
        max_age=result["expires_in"],
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return ActionResponse(success=True, data=TokenResponse(**result), message="Logged in successfully")


@router.post("/logout", response_model=ActionResponse[None])
async def logout(
    request: Request,
    response: Response,
    token: str = Depends(get_access_token),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
):
    await auth_service.logout(db, identity, actor, token, request)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return ActionResponse(success=True, message="Logged out successfully")


@router.post("/forgot-password", response_model=ActionResponse[None])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
):
    message = await auth_service.forgot_password(db, identity, body.email, request)
    return ActionResponse(success=True, message=message)


@router.post("/reset-password", response_model=ActionResponse[None])
async def reset_password(
    request: Request,
    body: PasswordRequest,
    token: str = Depends(get_access_token),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
):
    """Set a new password with the recovery token from the email link."""
    await auth_service.reset_password(db, identity, token, body.password, request)
    return ActionResponse(success=True, message="Password updated successfully")


@router.post("/setup-password", response_model=ActionResponse[Actor])
async def setup_password(
    body: PasswordRequest,
    token: str = Depends(get_access_token),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
):
    """First password for an invited account; activates the profile."""
    actor = await auth_service.setup_password(db, identity, token, body.password)
    return ActionResponse(success=True, data=actor, message="Account setup complete")


@router.get("/me", response_model=ActionResponse[MeResponse])
async def me(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Current actor with granted permissions and visible menu."""
    return ActionResponse(success=True, data=auth_service.me(db, actor))
