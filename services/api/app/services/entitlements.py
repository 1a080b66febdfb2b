"""Entitlement evaluator.

Entitlements are derived from a user's monthly response usage:
- period key: calendar month in UTC (YYYYMM as int, e.g. 202608)
- usage: usage_monthly counter for (user, period), 0 when absent
- limit: pluggable function, free tier = 3 responses per month
- canViewContact = canMessage = canRespond = usage < limit

The read path never fails: if the counter store is unreachable the
evaluator degrades to a zero count (availability over strict quota).
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.models import BusinessProfile, UsageCounter
from app.models.request import utcnow
from app.settings import get_settings
from app.stores.postgres import get_session, upsert_increment

logger = logging.getLogger("uvicorn.error")

# (user_id, role) -> responses allowed this period
ResponseLimit = Callable[[str, str | None], int]


def free_tier_limit(user_id: str, role: str | None) -> int:
    """Free tier: same monthly limit for everyone."""
    return get_settings().free_monthly_response_limit


_response_limit: ResponseLimit = free_tier_limit


def set_response_limit(limit: ResponseLimit | None) -> None:
    """Install a response limit function (None restores the free tier)."""
    global _response_limit
    _response_limit = limit or free_tier_limit


def period_key(now: datetime | None = None) -> int:
    """Calendar month key in UTC.

    Example:
        >>> period_key(datetime(2026, 8, 14, tzinfo=timezone.utc))
        202608
    """
    now = now or utcnow()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.year * 100 + now.month


@dataclass(frozen=True)
class Entitlements:
    """Permissions derived from monthly usage."""

    user_id: str
    audience: str  # "business" | "normal"
    is_subscribed: bool
    period: int
    response_count: int
    response_limit: int

    @property
    def remaining_responses(self) -> int:
        return max(0, self.response_limit - self.response_count)

    @property
    def can_respond(self) -> bool:
        return self.response_count < self.response_limit

    @property
    def can_view_contact(self) -> bool:
        return self.can_respond

    @property
    def can_message(self) -> bool:
        return self.can_respond

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "audience": self.audience,
            "is_subscribed": self.is_subscribed,
            "period": self.period,
            "response_count": self.response_count,
            "response_limit": self.response_limit,
            "remaining_responses": self.remaining_responses,
            "can_respond": self.can_respond,
            "can_view_contact": self.can_view_contact,
            "can_message": self.can_message,
        }


async def get_entitlements(
    user_id: str,
    role: str | None = None,
    now: datetime | None = None,
    limit: ResponseLimit | None = None,
) -> Entitlements:
    """Compute a user's entitlements for the period containing `now`.

    Args:
        user_id: User identifier.
        role: User role ("business" selects the business audience).
        now: Evaluation time (defaults to current UTC time).
        limit: Override for the installed response limit function.

    Returns:
        Entitlements snapshot. Never raises for store outages.
    """
    period = period_key(now)
    count = 0
    is_subscribed = False
    try:
        async with get_session() as session:
            row = await session.execute(
                select(UsageCounter.response_count).where(
                    UsageCounter.user_id == user_id,
                    UsageCounter.year_month == period,
                )
            )
            count = row.scalar_one_or_none() or 0
            is_subscribed = await _has_active_subscription(session, user_id)
    except (SQLAlchemyError, OSError, RuntimeError) as e:
        logger.warning(f"Entitlement store unavailable for user={user_id}, assuming zero usage: {e}")

    limit_fn = limit or _response_limit
    return Entitlements(
        user_id=user_id,
        audience="business" if role == "business" else "normal",
        is_subscribed=is_subscribed,
        period=period,
        response_count=count,
        response_limit=limit_fn(user_id, role),
    )


async def _has_active_subscription(session, user_id: str) -> bool:
    """Paid subscription status comes from the subscription subsystem snapshot."""
    result = await session.execute(
        select(BusinessProfile.is_subscribed).where(BusinessProfile.id == user_id)
    )
    return bool(result.scalar_one_or_none())


async def increment_usage(user_id: str, now: datetime | None = None) -> None:
    """Atomically add one response to the user's counter for the period.

    Raises:
        SQLAlchemyError: If the counter store write fails.
    """
    period = period_key(now)
    async with get_session() as session:
        await upsert_increment(
            session,
            UsageCounter,
            keys={"user_id": user_id, "year_month": period},
            counter="response_count",
            extra_on_update={"updated_at": utcnow()},
        )
    logger.info(f"Usage incremented for user={user_id} period={period}")
