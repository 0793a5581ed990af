"""Hosted Auth (GoTrue) REST client."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from cms_admin.core.config import settings
from cms_admin.core.exceptions import (
    AuthenticationError, IdentityError, IdentityUnavailableError, ResourceConflictError,
)
from cms_admin.identity.base import IdentityProvider, IdentitySession, IdentityUser

logger = logging.getLogger("cms_admin")


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _json(resp: httpx.Response) -> Dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        logger.error("Non-JSON response from identity service: HTTP %s", resp.status_code)
        raise IdentityError("Malformed response from identity service")
    if not isinstance(body, dict):
        raise IdentityError("Malformed response from identity service")
    return body


def _parse_user(data: Dict[str, Any]) -> IdentityUser:
    if not isinstance(data, dict):
        raise IdentityError("Malformed user payload from identity service")
    # Admin endpoints return the user bare, some versions wrap it in {"user": ...}
    if "user" in data and isinstance(data["user"], dict):
        data = data["user"]
    try:
        return IdentityUser(
            id=str(data["id"]),
            email=data.get("email") or "",
            email_confirmed_at=_parse_timestamp(data.get("email_confirmed_at")),
            user_metadata=data.get("user_metadata") or {},
        )
    except (KeyError, ValueError):
        raise IdentityError("Malformed user payload from identity service")


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    for key in ("msg", "message", "error_description", "error"):
        if isinstance(body, dict) and body.get(key):
            return str(body[key])
    return f"HTTP {resp.status_code}"


class GoTrueIdentityProvider(IdentityProvider):
    """Identity provider backed by the hosted Auth API.

    ``anon_key`` is used for end-user calls, ``service_role_key`` for the
    ``/admin`` endpoints. The underlying ``httpx.AsyncClient`` is created once
    and reused for the life of the provider.
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/auth/v1",
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> "GoTrueIdentityProvider":
        return cls(
            base_url=settings.SUPABASE_URL,
            anon_key=settings.SUPABASE_ANON_KEY,
            service_role_key=settings.SUPABASE_SERVICE_ROLE_KEY,
            timeout=settings.IDENTITY_TIMEOUT_SECONDS,
        )

    def _user_headers(self, access_token: str) -> Dict[str, str]:
        return {"apikey": self.anon_key, "Authorization": f"Bearer {access_token}"}

    def _admin_headers(self) -> Dict[str, str]:
        return {"apikey": self.service_role_key, "Authorization": f"Bearer {self.service_role_key}"}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.error("Identity service %s %s unreachable: %s", method, url, e)
            raise IdentityUnavailableError()

        if resp.status_code >= 500:
            logger.error("Identity service %s %s failed: %s", method, url, resp.status_code)
            raise IdentityUnavailableError()
        if resp.status_code in (401, 403):
            raise AuthenticationError(_error_message(resp))
        if resp.status_code >= 400:
            message = _error_message(resp)
            if resp.status_code in (409, 422) and "already" in message.lower():
                raise ResourceConflictError(message)
            if resp.status_code == 400 and url.startswith("/token"):
                raise AuthenticationError("Invalid email or password")
            raise IdentityError(message)
        return resp

    async def get_user(self, access_token: str) -> IdentityUser:
        if not access_token:
            raise AuthenticationError("Not authenticated")
        resp = await self._request("GET", "/user", headers=self._user_headers(access_token))
        return _parse_user(_json(resp))

    async def sign_in_with_password(self, email: str, password: str) -> IdentitySession:
        resp = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers={"apikey": self.anon_key},
        )
        data = _json(resp)
        try:
            return IdentitySession(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                token_type=data.get("token_type", "bearer"),
                expires_in=int(data.get("expires_in", 3600)),
                user=_parse_user(data["user"]),
            )
        except (KeyError, TypeError, ValueError):
            raise IdentityError("Malformed session payload from identity service")

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", headers=self._user_headers(access_token))

    async def update_password(self, access_token: str, password: str) -> IdentityUser:
        resp = await self._request(
            "PUT", "/user", json={"password": password}, headers=self._user_headers(access_token)
        )
        return _parse_user(_json(resp))

    async def send_password_reset(self, email: str, redirect_to: str) -> None:
        await self._request(
            "POST",
            "/recover",
            params={"redirect_to": redirect_to},
            json={"email": email},
            headers={"apikey": self.anon_key},
        )

    async def admin_create_user(self, email, password, email_confirm=True, user_metadata=None) -> IdentityUser:
        resp = await self._request(
            "POST",
            "/admin/users",
            json={
                "email": email,
                "password": password,
                "email_confirm": email_confirm,
                "user_metadata": user_metadata or {},
            },
            headers=self._admin_headers(),
        )
        return _parse_user(_json(resp))

    async def admin_invite_user(self, email, user_metadata=None, redirect_to=None) -> IdentityUser:
        params = {"redirect_to": redirect_to} if redirect_to else None
        resp = await self._request(
            "POST",
            "/invite",
            params=params,
            json={"email": email, "data": user_metadata or {}},
            headers=self._admin_headers(),
        )
        return _parse_user(_json(resp))

    async def admin_delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/admin/users/{user_id}", headers=self._admin_headers())

    async def aclose(self) -> None:
        await self._client.aclose()
