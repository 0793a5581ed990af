"""Email delivery collaborators.

The admin panel never formats or sends email itself: it hands a link and the
recipient details to one of these, and an external sender does the rest.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from cms_admin.core.config import settings

logger = logging.getLogger("cms_admin")


class EmailDelivery(ABC):
    """Hands an action link (invitation, recovery, setup) to a sender."""

    @abstractmethod
    async def deliver(
        self,
        template: str,
        email: str,
        link: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Return True when the sender accepted the message."""
        ...

    async def aclose(self) -> None:
        return None


class LogEmailDelivery(EmailDelivery):
    """Development sender: records that a message is due, never the link."""

    async def deliver(self, template, email, link, context=None) -> bool:
        logger.info("Email '%s' queued for %s (no sender configured)", template, email)
        return True


class WebhookEmailDelivery(EmailDelivery):
    """POSTs the message as JSON to an external email function."""

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=settings.IDENTITY_TIMEOUT_SECONDS)

    async def deliver(self, template, email, link, context=None) -> bool:
        payload = {
            "template": template,
            "to": email,
            "link": link,
            "context": context or {},
        }
        try:
            resp = await self._client.post(self.url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Email delivery '%s' to %s failed: %s", template, email, e)
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


def build_email_delivery() -> EmailDelivery:
    if settings.EMAIL_WEBHOOK_URL:
        return WebhookEmailDelivery(settings.EMAIL_WEBHOOK_URL)
    return LogEmailDelivery()
