"""Abstract identity provider (the privileged "admin client").

An ``IdentityProvider`` is built once per process and passed explicitly to
whatever needs it: ``create_app`` stores it on ``app.state.identity`` and the
``get_identity`` dependency hands it to request handlers; the CLI builds its
own. It is closed with ``aclose()`` on shutdown.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class IdentityUser:
    """Account as known to the identity service."""
    id: str
    email: str
    email_confirmed_at: Optional[datetime] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IdentitySession:
    """Tokens returned by a successful sign-in."""
    access_token: str
    user: IdentityUser
    expires_in: int
    refresh_token: Optional[str] = None
    token_type: str = "bearer"


class IdentityProvider(ABC):
    """Source of truth for credentials.

    Implementations raise ``AuthenticationError`` for rejected credentials,
    ``IdentityUnavailableError`` when the service cannot answer, and
    ``ResourceConflictError`` when an account already exists.
    """

    @abstractmethod
    async def get_user(self, access_token: str) -> IdentityUser:
        """Validate ``access_token`` with the service and return its owner."""
        ...

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> IdentitySession:
        ...

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        ...

    @abstractmethod
    async def update_password(self, access_token: str, password: str) -> IdentityUser:
        ...

    @abstractmethod
    async def send_password_reset(self, email: str, redirect_to: str) -> None:
        """Send a recovery link. Unknown emails are ignored silently."""
        ...

    @abstractmethod
    async def admin_create_user(
        self,
        email: str,
        password: str,
        email_confirm: bool = True,
        user_metadata: Optional[Dict[str, Any]] = None,
    ) -> IdentityUser:
        ...

    @abstractmethod
    async def admin_invite_user(
        self,
        email: str,
        user_metadata: Optional[Dict[str, Any]] = None,
        redirect_to: Optional[str] = None,
    ) -> IdentityUser:
        """Create a password-less account and send its setup link."""
        ...

    @abstractmethod
    async def admin_delete_user(self, user_id: str) -> None:
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        return None
