"""Route gate for the ``/admin`` page area.

One decision function for every admin page: it resolves the caller through
the same ``resolve_identity`` the API uses and fails closed, so any doubt
about the caller ends in a redirect to the login page.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional
from urllib.parse import urlencode

from cms_admin.core.exceptions import AuthenticationError, IdentityUnavailableError

logger = logging.getLogger("cms_admin")

PROTECTED_PREFIX = "/admin"
LOGIN_PATH = "/admin/login"
DASHBOARD_PATH = "/admin"
AUTH_EXEMPT_PATHS = (LOGIN_PATH, "/admin/forgot-password")

LOGIN_REQUIRED_MESSAGE = "Please log in to access this page"
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."

STATIC_ASSET_EXTENSIONS = frozenset({
    "png", "jpg", "jpeg", "gif", "svg", "webp", "avif", "ico", "bmp",
    "css", "js", "mjs", "map", "woff", "woff2", "ttf", "otf", "eot",
    "txt", "xml", "webmanifest", "pdf",
})


@dataclass(frozen=True)
class RouteDecision:
    allow: bool
    redirect_path: Optional[str] = None
    query: Dict[str, str] = field(default_factory=dict)

    @property
    def location(self) -> Optional[str]:
        if self.redirect_path is None:
            return None
        if not self.query:
            return self.redirect_path
        return f"{self.redirect_path}?{urlencode(self.query)}"


ALLOW = RouteDecision(allow=True)


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def is_protected_path(path: str) -> bool:
    return _under(path, PROTECTED_PREFIX)


def is_auth_exempt_path(path: str) -> bool:
    return any(_under(path, exempt) for exempt in AUTH_EXEMPT_PATHS)


def looks_like_static_asset(path: str) -> bool:
    last_segment = path.rstrip("/").rsplit("/", 1)[-1]
    if "." not in last_segment:
        return False
    return last_segment.rsplit(".", 1)[-1].lower() in STATIC_ASSET_EXTENSIONS


def redirect_to_login(path: str, message: str) -> RouteDecision:
    query = {"message": message}
    if not looks_like_static_asset(path):
        query["redirect"] = path
    return RouteDecision(allow=False, redirect_path=LOGIN_PATH, query=query)


def decide(path: str, authenticated: bool, failure_message: str = LOGIN_REQUIRED_MESSAGE) -> RouteDecision:
    """Pure decision table for an already-resolved caller."""
    if not is_protected_path(path):
        return ALLOW
    if is_auth_exempt_path(path):
        if authenticated:
            return RouteDecision(allow=False, redirect_path=DASHBOARD_PATH)
        return ALLOW
    if authenticated:
        return ALLOW
    return redirect_to_login(path, failure_message)


async def guard_route(
    path: str,
    access_token: Optional[str],
    resolve: Callable[[str], Awaitable[object]],
) -> RouteDecision:
    """Resolve the caller with ``resolve`` and apply the decision table.

    ``resolve`` raises ``AuthenticationError`` for an unauthenticated caller.
    Anything else it raises, including ``IdentityUnavailableError``, is
    treated as an expired session.
    """
    if not is_protected_path(path):
        return ALLOW

    authenticated = False
    failure_message = LOGIN_REQUIRED_MESSAGE
    if access_token:
        try:
            await resolve(access_token)
            authenticated = True
        except AuthenticationError:
            authenticated = False
        except IdentityUnavailableError:
            logger.error("Identity service unavailable while guarding %s", path)
            failure_message = SESSION_EXPIRED_MESSAGE
        except Exception:
            logger.exception("Identity resolution failed while guarding %s", path)
            failure_message = SESSION_EXPIRED_MESSAGE

    return decide(path, authenticated, failure_message)
