"""End-to-end tests through the HTTP layer."""

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app

OWNER = {"X-User-Id": "user-a", "X-Country-Code": "LK"}
RESPONDER = {"X-User-Id": "user-b", "X-User-Role": "business", "X-Country-Code": "LK"}
STRANGER = {"X-User-Id": "user-c"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


@pytest.fixture
async def client(db):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def _create(client: AsyncClient, **overrides) -> dict:
    body = {
        "title": "Need a cordless drill",
        "description": "Weekend project",
        "city_id": "colombo",
        "category_id": "tools",
        "request_type": "item",
        "requester_phone": "+94770000000",
        "requester_email": "a@example.com",
    }
    body.update(overrides)
    response = await client.post("/v1/requests", json=body, headers=OWNER)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_and_read_with_contact_gating(client: AsyncClient):
    created = await _create(client)
    assert created["status"] == "active"
    assert created["requester_phone"] == "+94770000000"
    assert created["country_code"] == "LK"

    anonymous = (await client.get(f"/v1/requests/{created['id']}")).json()
    assert "requester_phone" not in anonymous
    assert anonymous["requester_email"] == "a@example.com"
    assert anonymous["contact_visible"] is False
    assert anonymous["viewer_context"]["is_owner"] is False

    stranger = (await client.get(f"/v1/requests/{created['id']}", headers=STRANGER)).json()
    assert "requester_phone" not in stranger
    assert stranger["can_message"] is True

    owner = (await client.get(f"/v1/requests/{created['id']}", headers=OWNER)).json()
    assert owner["requester_phone"] == "+94770000000"
    assert owner["viewer_context"]["is_owner"] is True


@pytest.mark.asyncio
async def test_responder_sees_contact_after_responding(client: AsyncClient):
    created = await _create(client)
    posted = await client.post(
        f"/v1/requests/{created['id']}/responses",
        json={"message": "I have one", "price": 1500},
        headers=RESPONDER,
    )
    assert posted.status_code == 201
    body = posted.json()
    assert body["response"]["responder_id"] == "user-b"
    assert body["entitlements"]["response_count"] == 1

    detail = (await client.get(f"/v1/requests/{created['id']}", headers=RESPONDER)).json()
    assert detail["requester_phone"] == "+94770000000"
    assert detail["viewer_context"]["response_id"] == body["response"]["id"]

    listing = (await client.get("/v1/requests", headers=RESPONDER)).json()
    assert listing["items"][0]["has_responded"] is True
    assert listing["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_duplicate_and_own_responses_map_to_error_codes(client: AsyncClient):
    created = await _create(client)
    url = f"/v1/requests/{created['id']}/responses"

    own = await client.post(url, json={"message": "me"}, headers=OWNER)
    assert own.status_code == 403
    assert own.json()["error"]["code"] == "PERMISSION_DENIED"

    assert (await client.post(url, json={"message": "one"}, headers=RESPONDER)).status_code == 201
    duplicate = await client.post(url, json={"message": "two"}, headers=RESPONDER)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_response_listing_privacy(client: AsyncClient):
    created = await _create(client)
    url = f"/v1/requests/{created['id']}/responses"
    await client.post(url, json={"message": "one"}, headers=RESPONDER)
    await client.post(url, json={"message": "two"}, headers=STRANGER)

    assert (await client.get(url, headers=OWNER)).json()["pagination"]["total"] == 2
    own = (await client.get(url, headers=RESPONDER)).json()
    assert [item["message"] for item in own["items"]] == ["one"]
    assert (await client.get(url)).json()["items"] == []


@pytest.mark.asyncio
async def test_accept_complete_flow(client: AsyncClient):
    created = await _create(client)
    posted = (
        await client.post(f"/v1/requests/{created['id']}/responses", json={"message": "hi"}, headers=RESPONDER)
    ).json()
    response_id = posted["response"]["id"]

    accepted = await client.put(
        f"/v1/requests/{created['id']}/accept-response",
        json={"response_id": response_id},
        headers=OWNER,
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "closed"
    assert accepted.json()["accepted_response_id"] == response_id

    not_owner = await client.put(f"/v1/requests/{created['id']}/mark-completed", headers=RESPONDER)
    assert not_owner.status_code == 403

    completed = await client.put(f"/v1/requests/{created['id']}/mark-completed", headers=OWNER)
    assert completed.json()["status"] == "completed"

    locked = await client.delete(f"/v1/requests/{created['id']}/responses/{response_id}", headers=RESPONDER)
    assert locked.status_code == 409
    assert locked.json()["error"]["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_missing_request_is_404(client: AsyncClient):
    response = await client.get("/v1/requests/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"]["detail"] == {"request_id": "does-not-exist"}


@pytest.mark.asyncio
async def test_entitlements_me(client: AsyncClient):
    assert (await client.get("/v1/entitlements/me")).status_code == 401

    data = (await client.get("/v1/entitlements/me", headers=RESPONDER)).json()
    assert data["audience"] == "business"
    assert data["response_count"] == 0
    assert data["response_limit"] == 3
    assert data["can_respond"] is True


@pytest.mark.asyncio
async def test_module_config_read_and_admin_write(client: AsyncClient):
    seeded = (await client.get("/v1/modules/US")).json()
    assert seeded["source"] == "seed"
    assert "price_request" in seeded["disabled_modules"]

    updated = await client.put(
        "/v1/admin/modules/us",
        json={"enabled_modules": ["item_request", "ride_sharing"]},
        headers=ADMIN,
    )
    assert updated.status_code == 200
    assert updated.json()["country_code"] == "US"

    stored = (await client.get("/v1/modules/US")).json()
    assert stored["source"] == "stored"
    assert stored["total_modules"] == 2

    invalid = await client.put("/v1/admin/modules/US", json={"enabled_modules": ["warp"]}, headers=ADMIN)
    assert invalid.status_code == 400
    assert invalid.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_admin_match_preview_and_capability_check(client: AsyncClient, make_business):
    await make_business("courier", "Courier Co", legacy_business_type="delivery_service")
    await make_business("shop", "Shop Co")
    created = await _create(client, request_type="delivery", category_id="parcels")

    preview = await client.get(f"/v1/admin/requests/{created['id']}/matches", headers=ADMIN)
    assert preview.status_code == 200
    assert preview.json()["businesses"] == [
        {"business_id": "courier", "business_name": "Courier Co", "notification_reason": "delivery_service"}
    ]

    check = await client.get(
        "/v1/admin/businesses/shop/can-respond",
        params={"request_type": "delivery"},
        headers=ADMIN,
    )
    assert check.json() == {
        "business_id": "shop",
        "request_type": "delivery",
        "can_respond": False,
        "reason": "delivery_requires_delivery_service",
    }

    denied = await client.get(f"/v1/admin/requests/{created['id']}/matches", headers=OWNER)
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_country_header_sets_identity_country_next_to_country_path(client: AsyncClient):
    updated = await client.put(
        "/v1/admin/modules/IN",
        json={"enabled_modules": ["item_request"]},
        headers={**ADMIN, "X-Country-Code": "lk"},
    )
    assert updated.status_code == 200
    assert updated.json()["country_code"] == "IN"

    created = await client.post(
        "/v1/requests",
        json={"title": "Drill", "description": "Weekend", "city_id": "mumbai", "category_id": "tools"},
        headers={"X-User-Id": "user-in", "X-Country-Code": "in"},
    )
    assert created.status_code == 201
    assert created.json()["country_code"] == "IN"
