"""Notification dispatcher client.

Delivery (push/SMS/email) belongs to an external service; this client hands
it one JSON event per notification via webhook. Callers treat every
notification as fire-and-forget: failures raise NotificationError, which
call sites log and swallow. Nothing here retries.

If NOTIFICATION_WEBHOOK_URL is unset, events are only logged.
"""

from dataclasses import asdict, dataclass
import logging
from typing import Any

import httpx

from app.models import Request
from app.settings import get_settings

logger = logging.getLogger("uvicorn.error")


class NotificationError(RuntimeError):
    pass


@dataclass
class RequestSummary:
    """What a business needs to know about a new request."""

    request_id: str
    title: str
    request_type: str | None
    category_id: str | None
    subcategory_id: str | None
    country_code: str
    city_id: str
    is_urgent: bool = False

    @classmethod
    def from_request(cls, request: Request) -> "RequestSummary":
        return cls(
            request_id=request.id,
            title=request.title,
            request_type=request.request_type,
            category_id=request.category_id,
            subcategory_id=request.subcategory_id,
            country_code=request.country_code,
            city_id=request.city_id,
            is_urgent=bool(request.is_urgent),
        )


class NotificationDispatcher:
    """Client for the external notification service."""

    def __init__(self, webhook_url: str | None = None, timeout: float | None = None):
        """Initialize client with webhook URL."""
        settings = get_settings()
        self.webhook_url = webhook_url if webhook_url is not None else settings.notification_webhook_url
        self.timeout = timeout or settings.notification_timeout_seconds
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def notify_business(self, business_id: str, summary: RequestSummary, reason: str) -> None:
        """Tell a matched business about a new request.

        Args:
            business_id: Business (user) to notify.
            summary: Request summary.
            reason: Why the business matched (e.g. "category_match").
        """
        await self._deliver(
            {
                "kind": "newRequest",
                "recipient_id": business_id,
                "reason": reason,
                "request": asdict(summary),
            }
        )

    async def notify_user(
        self,
        recipient_id: str,
        kind: str,
        title: str,
        message: str,
        sender_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Send an in-app notification (newResponse, responseAccepted, ...)."""
        await self._deliver(
            {
                "kind": kind,
                "recipient_id": recipient_id,
                "sender_id": sender_id,
                "title": title,
                "message": message,
                "data": data or {},
            }
        )

    async def _deliver(self, payload: dict[str, Any]) -> None:
        if not self.webhook_url:
            logger.info(
                f"Notification not delivered (webhook unset): kind={payload['kind']} "
                f"recipient={payload['recipient_id']}"
            )
            return

        client = await self._get_client()
        try:
            response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(
                f"Notification delivery failed for recipient={payload['recipient_id']}: {e}"
            ) from e


_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    """Get shared dispatcher instance."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


async def close_dispatcher() -> None:
    """Close shared dispatcher (application shutdown)."""
    global _dispatcher
    if _dispatcher is not None:
        await _dispatcher.close()
        _dispatcher = None


async def notify_user_safely(dispatcher: NotificationDispatcher, **kwargs: Any) -> None:
    """Fire-and-forget user notification: log failures, never raise."""
    try:
        await dispatcher.notify_user(**kwargs)
    except Exception:
        logger.warning(
            f"Notification {kwargs.get('kind')} to {kwargs.get('recipient_id')} failed",
            exc_info=True,
        )
