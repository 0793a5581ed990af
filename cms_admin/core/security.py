"""Credential hashing, token helpers and RBAC request dependencies."""

import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from cms_admin.core.config import settings
from cms_admin.core.exceptions import (
    AuthenticationError, ForbiddenError, IdentityUnavailableError,
)
from cms_admin.db.session import get_db
from cms_admin.identity.base import IdentityProvider
from cms_admin.identity.delivery import EmailDelivery
from cms_admin.schemas.schemas import Actor
from cms_admin.services.authorization_service import authorization_service

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token with a unique ``jti``."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access", "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def generate_token() -> str:
    """Random URL-safe token handed out once and never stored."""
    return secrets.token_urlsafe(32)


def hash_token(raw_token: str) -> str:
    """Keyed one-way hash used to store and look up invitation tokens."""
    return hmac.new(
        settings.INVITATION_TOKEN_SECRET.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---- Request dependencies ----

def get_identity(request: Request) -> IdentityProvider:
    """The identity provider built by ``create_app``."""
    return request.app.state.identity


def get_email_delivery(request: Request) -> EmailDelivery:
    return request.app.state.delivery


def extract_credential(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> str:
    token = extract_credential(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


async def get_current_actor(
    token: str = Depends(get_access_token),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
) -> Actor:
    """Resolve the caller, re-validating the credential with the identity service."""
    try:
        return await authorization_service.resolve_identity(db, identity, token)
    except IdentityUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class RequirePermission:
    """Dependency that checks the caller holds a permission key."""

    def __init__(self, permission_key: str):
        self.permission_key = permission_key

    async def __call__(
        self,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db),
    ) -> Actor:
        try:
            authorization_service.require_active(actor)
            authorization_service.require_permission(db, actor, self.permission_key)
        except ForbiddenError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
        return actor


async def require_super_admin_actor(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency allowing only super-admin actors."""
    try:
        authorization_service.require_super_admin(actor)
    except ForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    return actor
