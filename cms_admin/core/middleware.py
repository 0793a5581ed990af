"""CORS, request-id, logging and admin route-guard middleware."""

import logging
import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from cms_admin.core.config import settings
from cms_admin.core.route_guard import guard_route, is_protected_path
from cms_admin.services.authorization_service import authorization_service

logger = logging.getLogger("cms_admin")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Add a unique request ID to every request/response."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        response: Response = await call_next(request)

        duration = round((time.time() - start_time) * 1000, 2)
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration)

        logger.info(
            "%s %s %s %sms",
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )
        return response


class AdminRouteGuardMiddleware(BaseHTTPMiddleware):
    """Redirect unauthenticated callers away from ``/admin`` pages.

    The resolved actor is left on ``request.state.actor`` for the page handler.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not is_protected_path(path):
            return await call_next(request)

        state = request.app.state
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)
        auth_header = request.headers.get("authorization", "")
        if auth_header.lower().startswith("bearer "):
            token = auth_header[7:].strip() or token

        async def resolve(access_token: str):
            db = state.session_factory()
            try:
                actor = await authorization_service.resolve_identity(db, state.identity, access_token)
            finally:
                db.close()
            request.state.actor = actor
            return actor

        request.state.actor = None
        decision = await guard_route(path, token, resolve)
        if not decision.allow:
            return RedirectResponse(decision.location, status_code=307)
        return await call_next(request)


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    # Admin page gate (innermost)
    app.add_middleware(AdminRouteGuardMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID + timing
    app.add_middleware(RequestIdMiddleware)
