"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from cms_admin.core.config import settings
from cms_admin.core.exceptions import CMSAdminError
from cms_admin.core.middleware import setup_middleware
from cms_admin.core.rate_limiter import limiter
from cms_admin.db.session import SessionLocal
from cms_admin.identity.base import IdentityProvider
from cms_admin.identity.delivery import EmailDelivery, build_email_delivery
from cms_admin.identity.factory import build_identity_provider

from cms_admin.api.admin import router as admin_pages_router
from cms_admin.api.audit import router as audit_router
from cms_admin.api.auth import router as auth_router
from cms_admin.api.blog import router as blog_router
from cms_admin.api.invitations import router as invitations_router
from cms_admin.api.job_posts import router as job_posts_router
from cms_admin.api.public import router as public_router
from cms_admin.api.roles import router as roles_router
from cms_admin.api.settings import router as settings_router
from cms_admin.api.users import router as users_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("cms_admin")


def _envelope(status_code: int, error: str, headers=None, data=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "data": data, "error": error, "message": None}),
        headers=headers,
    )


def create_app(
    identity: Optional[IdentityProvider] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    delivery: Optional[EmailDelivery] = None,
) -> FastAPI:
    """Build the application.

    The identity provider is created here once and closed on shutdown; pass
    one in to use a different backend (tests do).
    """
    session_factory = session_factory or SessionLocal
    delivery = delivery or build_email_delivery()
    identity = identity or build_identity_provider(session_factory, delivery)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s (identity backend: %s)", settings.APP_NAME, type(identity).__name__)
        yield
        await identity.aclose()
        await delivery.aclose()
        logger.info("Shut down %s", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Admin panel: roles, permissions, invitations and audit",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.identity = identity
    app.state.session_factory = session_factory
    app.state.delivery = delivery

    # Middleware
    setup_middleware(app)

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(CMSAdminError)
    async def cms_admin_exception_handler(request: Request, exc: CMSAdminError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return _envelope(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _envelope(422, "Invalid request", data=exc.errors())

    # Register routers
    app.include_router(auth_router, prefix="/api")
    app.include_router(invitations_router, prefix="/api")
    app.include_router(users_router, prefix="/api")
    app.include_router(roles_router, prefix="/api")
    app.include_router(audit_router, prefix="/api")
    app.include_router(settings_router, prefix="/api")
    app.include_router(blog_router, prefix="/api")
    app.include_router(job_posts_router, prefix="/api")
    app.include_router(public_router, prefix="/api")
    app.include_router(admin_pages_router)

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": "0.1.0",
            "docs": "/docs",
            "admin": "/admin",
        }

    @app.get("/api/health")
    async def health():
        """Quick health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()
