import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.services.entitlements import (
    get_entitlements,
    increment_usage,
    period_key,
    set_response_limit,
)
from app.stores.postgres import close_db

AUG = datetime(2026, 8, 14, 12, 0, tzinfo=timezone.utc)
SEP = datetime(2026, 9, 1, 0, 0, tzinfo=timezone.utc)


def test_period_key_is_utc_month():
    assert period_key(AUG) == 202608
    # 23:30 on Aug 31 in UTC-5 is already September in UTC
    local = datetime(2026, 8, 31, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert period_key(local) == 202609


@pytest.mark.asyncio
async def test_missing_counter_means_full_quota(db):
    ent = await get_entitlements("user-x", now=AUG)
    assert ent.response_count == 0
    assert ent.response_limit == 3
    assert ent.remaining_responses == 3
    assert ent.can_respond and ent.can_view_contact and ent.can_message
    assert ent.audience == "normal"


@pytest.mark.asyncio
async def test_limit_reached_after_three_increments(db):
    for _ in range(3):
        await increment_usage("user-x", now=AUG)
    ent = await get_entitlements("user-x", role="business", now=AUG)
    assert ent.response_count == 3
    assert ent.can_respond is False
    assert ent.can_message is False
    assert ent.remaining_responses == 0
    assert ent.audience == "business"


@pytest.mark.asyncio
async def test_new_period_starts_fresh(db):
    for _ in range(3):
        await increment_usage("user-x", now=AUG)
    ent = await get_entitlements("user-x", now=SEP)
    assert ent.period == 202609
    assert ent.response_count == 0
    assert ent.can_respond


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(db):
    await asyncio.gather(*(increment_usage("user-x", now=AUG) for _ in range(10)))
    ent = await get_entitlements("user-x", now=AUG)
    assert ent.response_count == 10


@pytest.mark.asyncio
async def test_store_outage_degrades_to_zero_usage(db):
    await increment_usage("user-x", now=AUG)
    await close_db()
    ent = await get_entitlements("user-x", now=AUG)
    assert ent.response_count == 0
    assert ent.can_respond


@pytest.mark.asyncio
async def test_pluggable_limit(db):
    for _ in range(3):
        await increment_usage("user-x", now=AUG)
    set_response_limit(lambda user_id, role: 10 if role == "business" else 3)
    try:
        assert (await get_entitlements("user-x", role="business", now=AUG)).can_respond
        assert not (await get_entitlements("user-x", role="user", now=AUG)).can_respond
    finally:
        set_response_limit(None)


@pytest.mark.asyncio
async def test_subscription_snapshot_is_reported(db, make_business):
    await make_business("user-x", is_subscribed=True)
    ent = await get_entitlements("user-x", role="business", now=AUG)
    assert ent.is_subscribed is True
