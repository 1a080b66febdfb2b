"""Tests for health endpoint and error envelopes."""

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app


@pytest.fixture
async def client():
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test health endpoint returns ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_unauthenticated_write_uses_error_envelope(client: AsyncClient):
    response = await client.post("/v1/requests", json={"title": "Drill"})
    assert response.status_code == 401
    assert response.json() == {
        "error": {"code": "UNAUTHENTICATED", "message": "Authentication required", "detail": None}
    }


@pytest.mark.asyncio
async def test_admin_routes_reject_non_admins(client: AsyncClient):
    response = await client.put(
        "/v1/admin/modules/LK",
        json={"enabled_modules": ["item_request"]},
        headers={"X-User-Id": "u1", "X-User-Role": "business"},
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PERMISSION_DENIED"
