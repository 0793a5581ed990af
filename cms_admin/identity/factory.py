"""Build the configured identity provider."""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from cms_admin.core.config import settings
from cms_admin.identity.base import IdentityProvider
from cms_admin.identity.delivery import EmailDelivery
from cms_admin.identity.gotrue import GoTrueIdentityProvider
from cms_admin.identity.local import LocalIdentityProvider


def build_identity_provider(
    session_factory: Callable[[], Session],
    delivery: Optional[EmailDelivery] = None,
) -> IdentityProvider:
    backend = settings.IDENTITY_BACKEND.lower()
    if backend == "gotrue":
        return GoTrueIdentityProvider.from_settings()
    if backend == "local":
        return LocalIdentityProvider(session_factory, delivery)
    raise ValueError(f"Unknown IDENTITY_BACKEND '{settings.IDENTITY_BACKEND}'")
