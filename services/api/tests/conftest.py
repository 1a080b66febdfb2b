"""Shared fixtures.

Database-backed tests run the real models against an on-disk SQLite file
(aiosqlite) so the unique constraint and the upsert-increment are exercised.
Redis is never initialized, so locks and caches take their degraded path.
"""

from typing import Any

import pytest

from app.models import BusinessProfile, BusinessType, CountryBusinessType
from app.services.identity import Identity
from app.services.notifications import NotificationDispatcher, NotificationError, RequestSummary
from app.services.requests import create_request
from app.stores.postgres import close_db, create_tables, get_session, init_db


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that records notifications instead of delivering them."""

    def __init__(self, failing_recipients: set[str] | None = None):
        super().__init__(webhook_url="")
        self.failing_recipients = failing_recipients or set()
        self.business_calls: list[tuple[str, RequestSummary, str]] = []
        self.user_calls: list[dict[str, Any]] = []

    async def notify_business(self, business_id: str, summary: RequestSummary, reason: str) -> None:
        if business_id in self.failing_recipients:
            raise NotificationError(f"delivery failed for {business_id}")
        self.business_calls.append((business_id, summary, reason))

    async def notify_user(self, recipient_id: str, kind: str, title: str, message: str, sender_id=None, data=None):
        if recipient_id in self.failing_recipients:
            raise NotificationError(f"delivery failed for {recipient_id}")
        self.user_calls.append({"recipient_id": recipient_id, "kind": kind, "sender_id": sender_id, "data": data})


@pytest.fixture
async def db(tmp_path):
    """Fresh SQLite database per test."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}")
    await create_tables()
    yield
    await close_db()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def owner() -> Identity:
    return Identity(user_id="user-a", role="user", country_code="LK")


@pytest.fixture
def responder() -> Identity:
    return Identity(user_id="user-b", role="business", country_code="LK")


@pytest.fixture
def make_request(db, dispatcher, owner):
    """Create a request through the service (owner and attrs overridable)."""

    async def _make(identity: Identity | None = None, **attrs: Any) -> dict[str, Any]:
        payload = {
            "title": "Need a cordless drill",
            "description": "Looking for a drill for one weekend",
            "city_id": "colombo",
            "category_id": "tools",
            "request_type": "item",
            "requester_phone": "+94770000000",
            "requester_email": "a@example.com",
        }
        payload.update(attrs)
        now = payload.pop("now", None)
        return await create_request(identity or owner, payload, dispatcher=dispatcher, now=now)

    return _make


@pytest.fixture
def make_business(db):
    """Insert a business profile snapshot.

    Keyword args:
        type_name: global business type name (legacy schema).
        country_type: dict for a country_business_types row (current schema).
    """

    async def _make(business_id: str, name: str | None = None, **kwargs: Any) -> None:
        type_name = kwargs.pop("type_name", None)
        country_type = kwargs.pop("country_type", None)
        values: dict[str, Any] = {
            "business_name": name or business_id.title(),
            "country_code": "LK",
            "is_verified": True,
            "status": "approved",
            "is_subscribed": True,
            "categories": [],
        }
        values.update(kwargs)
        async with get_session() as session:
            profile = BusinessProfile(id=business_id, **values)
            if type_name:
                profile.business_type = BusinessType(id=f"bt-{business_id}", name=type_name)
            if country_type:
                profile.country_business_type = CountryBusinessType(id=f"cbt-{business_id}", **country_type)
            session.add(profile)

    return _make
