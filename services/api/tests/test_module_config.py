import pytest

from app.services.errors import ValidationError
from app.services.module_config import (
    ALL_MODULES,
    BASE_MODULES,
    ModuleConfigStore,
    builtin_config,
    ensure_type_enabled,
)
from app.services.request_types import RequestType
from app.settings import get_settings


def test_builtin_configs_for_seeded_and_unknown_countries():
    lk = builtin_config("lk")
    assert lk.source == "seed"
    assert lk.enabled_modules == BASE_MODULES

    us = builtin_config("US")
    assert not us.is_enabled("price_request")
    assert us.is_enabled("tours")

    india = builtin_config("IN")
    assert not india.is_enabled("rental_request")
    assert india.is_enabled("ride_sharing")

    fallback = builtin_config("FR")
    assert fallback.source == "default"
    assert fallback.country_code == "FR"
    assert fallback.to_dict()["total_modules"] == len(BASE_MODULES)


def test_disabled_list_wins_over_enabled_list():
    config = builtin_config("US")
    config.disabled_modules.append("tours")
    assert not config.is_enabled("tours")


@pytest.mark.asyncio
async def test_store_falls_back_to_seed_then_reads_stored_rows(db):
    store = ModuleConfigStore(cache_ttl=0)
    assert (await store.get("LK")).source == "seed"

    saved = await store.set("lk", ["item_request", "service_request", "item_request"], updated_by="admin-1")
    assert saved.enabled_modules == ["item_request", "service_request"]

    loaded = await store.get("LK")
    assert loaded.source == "stored"
    assert loaded.enabled_modules == ["item_request", "service_request"]
    assert await store.is_module_enabled("LK", "item_request")
    assert not await store.is_module_enabled("LK", "ride_sharing")


@pytest.mark.asyncio
async def test_set_replaces_existing_row(db):
    store = ModuleConfigStore(cache_ttl=0)
    await store.set("IN", ["item_request"])
    await store.set("IN", ["item_request", "tours"], ["rental_request"])

    loaded = await store.get("IN")
    assert loaded.enabled_modules == ["item_request", "tours"]
    assert loaded.disabled_modules == ["rental_request"]


@pytest.mark.asyncio
async def test_set_rejects_unknown_and_overlapping_modules(db):
    store = ModuleConfigStore(cache_ttl=0)
    with pytest.raises(ValidationError) as exc:
        await store.set("LK", ["item_request", "teleport"])
    assert exc.value.detail == {"unknown": ["teleport"]}

    with pytest.raises(ValidationError) as exc:
        await store.set("LK", ["item_request", "tours"], ["tours"])
    assert exc.value.detail == {"overlap": ["tours"]}

    assert "teleport" not in ALL_MODULES
    assert (await store.get("LK")).source == "seed"


@pytest.mark.asyncio
async def test_store_works_without_redis_when_cache_enabled(db):
    store = ModuleConfigStore(cache_ttl=300)
    await store.set("US", ["item_request"])
    assert (await store.get("US")).enabled_modules == ["item_request"]


@pytest.mark.asyncio
async def test_ensure_type_enabled(db):
    await ensure_type_enabled("IN", RequestType.ITEM)
    await ensure_type_enabled("IN", None)
    with pytest.raises(ValidationError) as exc:
        await ensure_type_enabled("in", RequestType.RENT)
    assert exc.value.detail == {"module": "rental_request", "country_code": "IN"}


@pytest.mark.asyncio
async def test_request_creation_respects_country_modules_when_enforced(make_request, monkeypatch):
    monkeypatch.setattr(get_settings(), "enforce_country_modules", True)
    with pytest.raises(ValidationError):
        await make_request(request_type="rent", country_code="IN")

    record = await make_request(request_type="rent", country_code="LK")
    assert record["request_type"] == "rent"


@pytest.mark.asyncio
async def test_country_modules_ignored_when_not_enforced(make_request):
    record = await make_request(request_type="rent", country_code="IN")
    assert record["country_code"] == "IN"
