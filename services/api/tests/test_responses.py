import asyncio

import pytest

from app.services import responses
from app.services.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    QuotaExceededError,
    ValidationError,
)
from app.services.identity import Identity
from app.services.requests import accept_response, clear_accepted, mark_completed
from app.services.responses import (
    ALREADY_RESPONDED,
    OWN_REQUEST,
    create_response,
    delete_response,
    list_responses,
    update_response,
)
from app.settings import get_settings


@pytest.mark.asyncio
async def test_create_response_defaults_and_usage(make_request, responder, dispatcher):
    record = await make_request(currency="LKR")
    response, entitlements = await create_response(
        responder, record["id"], {"message": "  have one  ", "price": 100}, dispatcher=dispatcher
    )
    assert response["message"] == "have one"
    assert response["currency"] == "LKR"
    assert response["country_code"] == "LK"
    assert response["is_accepted"] is False
    assert entitlements.response_count == 1
    assert entitlements.remaining_responses == 2


@pytest.mark.asyncio
async def test_owner_cannot_respond(make_request, owner, dispatcher):
    record = await make_request()
    with pytest.raises(PermissionDeniedError) as exc:
        await create_response(owner, record["id"], {"message": "me"}, dispatcher=dispatcher)
    assert exc.value.message == OWN_REQUEST


@pytest.mark.asyncio
async def test_rejects_empty_message_missing_and_inactive_requests(make_request, owner, responder, dispatcher):
    record = await make_request()
    with pytest.raises(ValidationError):
        await create_response(responder, record["id"], {"message": "   "}, dispatcher=dispatcher)
    with pytest.raises(NotFoundError):
        await create_response(responder, "missing", {"message": "hi"}, dispatcher=dispatcher)

    first, _ = await create_response(Identity(user_id="b1"), record["id"], {"message": "hi"}, dispatcher=dispatcher)
    await accept_response(owner, record["id"], first["id"], dispatcher=dispatcher)
    with pytest.raises(InvalidStateError):
        await create_response(responder, record["id"], {"message": "late"}, dispatcher=dispatcher)


@pytest.mark.asyncio
async def test_duplicate_response_conflicts(make_request, responder, dispatcher):
    record = await make_request()
    await create_response(responder, record["id"], {"message": "one"}, dispatcher=dispatcher)
    with pytest.raises(ConflictError) as exc:
        await create_response(responder, record["id"], {"message": "two"}, dispatcher=dispatcher)
    assert exc.value.message == ALREADY_RESPONDED


@pytest.mark.asyncio
async def test_concurrent_duplicates_yield_one_success(make_request, responder, dispatcher):
    record = await make_request()
    results = await asyncio.gather(
        *(create_response(responder, record["id"], {"message": f"try {i}"}, dispatcher=dispatcher) for i in range(5)),
        return_exceptions=True,
    )
    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 4

    page = await list_responses(Identity(user_id="user-a"), record["id"])
    assert page.total == 1


@pytest.mark.asyncio
async def test_fourth_response_succeeds_but_reports_exhaustion(make_request, responder, dispatcher):
    records = [await make_request(title=f"Request {i}") for i in range(4)]
    for record in records[:3]:
        await create_response(responder, record["id"], {"message": "hi"}, dispatcher=dispatcher)

    _, entitlements = await create_response(responder, records[3]["id"], {"message": "hi"}, dispatcher=dispatcher)
    assert entitlements.response_count == 4
    assert entitlements.can_respond is False
    assert entitlements.can_view_contact is False


@pytest.mark.asyncio
async def test_quota_enforcement_blocks_when_enabled(make_request, responder, dispatcher, monkeypatch):
    monkeypatch.setattr(get_settings(), "enforce_response_quota", True)
    monkeypatch.setattr(get_settings(), "free_monthly_response_limit", 1)
    first = await make_request(title="First")
    second = await make_request(title="Second")

    await create_response(responder, first["id"], {"message": "hi"}, dispatcher=dispatcher)
    with pytest.raises(QuotaExceededError) as exc:
        await create_response(responder, second["id"], {"message": "hi"}, dispatcher=dispatcher)
    assert exc.value.status_code == 402
    assert exc.value.code == "LIMIT_REACHED"


@pytest.mark.asyncio
async def test_subscribed_responders_do_not_consume_quota(make_request, make_business, responder, dispatcher):
    await make_business(responder.user_id, is_subscribed=True)
    record = await make_request()
    _, entitlements = await create_response(responder, record["id"], {"message": "hi"}, dispatcher=dispatcher)
    assert entitlements.is_subscribed is True
    assert entitlements.response_count == 0


@pytest.mark.asyncio
async def test_ride_responses_require_ride_capability(make_request, make_business, dispatcher):
    ride = await make_request(request_type="ride", category_id=None)
    driver = Identity(user_id="driver-1", role="business")
    shop = Identity(user_id="shop-1", role="business")
    await make_business(driver.user_id, legacy_business_type="ride_service")
    await make_business(shop.user_id, legacy_business_type="product_selling")

    with pytest.raises(PermissionDeniedError) as exc:
        await create_response(shop, ride["id"], {"message": "I can drive"}, dispatcher=dispatcher)
    assert exc.value.detail == {"reason": "ride_requests_for_ride_services_only"}

    response, _ = await create_response(driver, ride["id"], {"message": "On my way"}, dispatcher=dispatcher)
    assert response["responder_id"] == driver.user_id


@pytest.mark.asyncio
async def test_common_types_are_not_capability_gated_on_submission(make_request, make_business, dispatcher):
    record = await make_request(request_type="rent")
    blocked = Identity(user_id="blocked-1", role="business")
    await make_business(
        blocked.user_id,
        country_type={"country_code": "LK", "name": "Retail", "can_respond_rent": False},
    )
    response, _ = await create_response(blocked, record["id"], {"message": "rent mine"}, dispatcher=dispatcher)
    assert response["id"]


@pytest.mark.asyncio
async def test_list_privacy(make_request, owner, dispatcher):
    record = await make_request()
    b1 = Identity(user_id="b1")
    b2 = Identity(user_id="b2")
    r1, _ = await create_response(b1, record["id"], {"message": "one"}, dispatcher=dispatcher)
    r2, _ = await create_response(b2, record["id"], {"message": "two"}, dispatcher=dispatcher)

    owner_page = await list_responses(owner, record["id"])
    assert [item["id"] for item in owner_page.items] == [r2["id"], r1["id"]]

    own_only = await list_responses(b1, record["id"])
    assert [item["id"] for item in own_only.items] == [r1["id"]]

    stranger = await list_responses(Identity(user_id="c"), record["id"])
    assert stranger.items == []

    anonymous = await list_responses(Identity(), record["id"])
    assert anonymous.items == [] and anonymous.total == 0

    capped = await list_responses(owner, record["id"], limit=1000)
    assert capped.limit == 100


@pytest.mark.asyncio
async def test_update_response_rules(make_request, owner, responder, dispatcher):
    record = await make_request()
    response, _ = await create_response(responder, record["id"], {"message": "one"}, dispatcher=dispatcher)

    updated = await update_response(responder, record["id"], response["id"], {"message": "better offer", "price": 80})
    assert updated["message"] == "better offer"
    assert updated["price"] == 80

    with pytest.raises(PermissionDeniedError):
        await update_response(owner, record["id"], response["id"], {"message": "owner edit"})
    with pytest.raises(ValidationError):
        await update_response(responder, record["id"], response["id"], {"message": ""})


@pytest.mark.asyncio
async def test_accepted_response_delete_requires_clearing_first(make_request, owner, responder, dispatcher):
    record = await make_request()
    response, _ = await create_response(responder, record["id"], {"message": "one"}, dispatcher=dispatcher)
    await accept_response(owner, record["id"], response["id"], dispatcher=dispatcher)

    with pytest.raises(InvalidStateError):
        await delete_response(responder, record["id"], response["id"])
    with pytest.raises(InvalidStateError):
        await delete_response(owner, record["id"], response["id"])

    await clear_accepted(owner, record["id"])
    await delete_response(owner, record["id"], response["id"])
    assert (await list_responses(owner, record["id"])).total == 0


@pytest.mark.asyncio
async def test_delete_permissions(make_request, responder, dispatcher):
    record = await make_request()
    response, _ = await create_response(responder, record["id"], {"message": "one"}, dispatcher=dispatcher)

    with pytest.raises(PermissionDeniedError):
        await delete_response(Identity(user_id="stranger"), record["id"], response["id"])
    with pytest.raises(NotFoundError):
        await delete_response(responder, "other-request", response["id"])

    await delete_response(responder, record["id"], response["id"])


@pytest.mark.asyncio
async def test_completed_request_response_stays_locked(make_request, owner, responder, dispatcher):
    record = await make_request()
    response, _ = await create_response(responder, record["id"], {"message": "one"}, dispatcher=dispatcher)
    await accept_response(owner, record["id"], response["id"], dispatcher=dispatcher)
    await mark_completed(owner, record["id"])

    with pytest.raises(InvalidStateError):
        await delete_response(responder, record["id"], response["id"])


@pytest.mark.asyncio
async def test_notification_failures_do_not_fail_response(make_request, owner, responder, dispatcher):
    record = await make_request()
    dispatcher.failing_recipients = {owner.user_id}
    response, _ = await create_response(responder, record["id"], {"message": "hi"}, dispatcher=dispatcher)
    assert response["id"]


@pytest.mark.asyncio
async def test_request_closed_mid_submission_rejects_response(make_request, owner, responder, dispatcher, monkeypatch):
    record = await make_request()
    first, _ = await create_response(Identity(user_id="b1"), record["id"], {"message": "first"}, dispatcher=dispatcher)

    read_entitlements = responses.get_entitlements
    accepted = []

    async def accept_while_reading(*args, **kwargs):
        if not accepted:
            accepted.append(await accept_response(owner, record["id"], first["id"], dispatcher=dispatcher))
        return await read_entitlements(*args, **kwargs)

    monkeypatch.setattr(responses, "get_entitlements", accept_while_reading)

    with pytest.raises(InvalidStateError):
        await create_response(responder, record["id"], {"message": "too late"}, dispatcher=dispatcher)
    assert accepted[0]["status"] == "closed"

    page = await list_responses(owner, record["id"])
    assert [item["responder_id"] for item in page.items] == ["b1"]
