"""Country module configuration store.

Which request modules are enabled per country:
- stored rows (country_module_configs) win
- otherwise the built-in seed for the country (LK, US, IN)
- otherwise the default configuration

Reads go through a Redis cache (TTL from settings) when Redis is available;
writes invalidate it. If Redis is unavailable the store reads the database
directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.models import CountryModuleConfig
from app.models.request import utcnow
from app.services.errors import DependencyUnavailableError, ValidationError
from app.services.request_types import RequestType
from app.settings import get_settings
from app.stores.postgres import get_session
from app.stores.redis import (
    get_module_config_cache,
    invalidate_module_config_cache,
    set_module_config_cache,
)

logger = logging.getLogger("uvicorn.error")

BASE_MODULES = [
    "item_request",
    "service_request",
    "rental_request",
    "delivery_request",
    "ride_sharing",
    "price_request",
]
EXTENDED_MODULES = ["tours", "events", "construction", "education", "hiring", "other"]
ALL_MODULES = frozenset(BASE_MODULES + EXTENDED_MODULES)

# Request type -> module that must be enabled to post it
MODULE_FOR_TYPE: dict[RequestType, str] = {
    RequestType.ITEM: "item_request",
    RequestType.SERVICE: "service_request",
    RequestType.RENT: "rental_request",
    RequestType.DELIVERY: "delivery_request",
    RequestType.RIDE: "ride_sharing",
    RequestType.PRICE: "price_request",
    RequestType.TOURS: "tours",
    RequestType.EVENTS: "events",
    RequestType.CONSTRUCTION: "construction",
    RequestType.EDUCATION: "education",
    RequestType.JOB: "hiring",
    RequestType.OTHER: "other",
}


@dataclass
class ModuleConfig:
    country_code: str
    enabled_modules: list[str]
    disabled_modules: list[str] = field(default_factory=list)
    source: str = "default"  # "default" | "seed" | "stored"

    def is_enabled(self, module: str) -> bool:
        return module in self.enabled_modules and module not in self.disabled_modules

    def to_dict(self) -> dict[str, Any]:
        return {
            "country_code": self.country_code,
            "enabled_modules": list(self.enabled_modules),
            "disabled_modules": list(self.disabled_modules),
            "total_modules": len(self.enabled_modules),
            "source": self.source,
        }


DEFAULT_MODULES = {"enabled_modules": list(BASE_MODULES), "disabled_modules": []}

COUNTRY_SEEDS: dict[str, dict[str, list[str]]] = {
    "LK": {"enabled_modules": list(BASE_MODULES), "disabled_modules": []},
    "US": {
        "enabled_modules": [m for m in BASE_MODULES if m != "price_request"] + EXTENDED_MODULES,
        "disabled_modules": ["price_request"],
    },
    "IN": {
        "enabled_modules": [m for m in BASE_MODULES if m not in ("rental_request", "price_request")]
        + EXTENDED_MODULES,
        "disabled_modules": ["rental_request", "price_request"],
    },
}


def builtin_config(country_code: str) -> ModuleConfig:
    """Seed or default configuration for a country."""
    code = country_code.upper()
    seed = COUNTRY_SEEDS.get(code)
    if seed is not None:
        return ModuleConfig(code, list(seed["enabled_modules"]), list(seed["disabled_modules"]), "seed")
    return ModuleConfig(
        code,
        list(DEFAULT_MODULES["enabled_modules"]),
        list(DEFAULT_MODULES["disabled_modules"]),
    )


def _validate_modules(modules: list[str]) -> list[str]:
    unknown = sorted(set(modules) - ALL_MODULES)
    if unknown:
        raise ValidationError(f"Unknown modules: {', '.join(unknown)}", detail={"unknown": unknown})
    # Keep caller order, drop duplicates
    return list(dict.fromkeys(modules))


class ModuleConfigStore:
    """Read/write access to per-country module configuration."""

    def __init__(self, cache_ttl: int | None = None):
        self.cache_ttl = cache_ttl if cache_ttl is not None else get_settings().module_config_cache_ttl

    async def get(self, country_code: str) -> ModuleConfig:
        """Effective configuration for a country."""
        code = country_code.upper()
        cached = await self._try_get_cached(code)
        if cached is not None:
            return cached

        try:
            async with get_session() as session:
                row = await session.get(CountryModuleConfig, code)
                config = (
                    ModuleConfig(
                        code,
                        list(row.enabled_modules or []),
                        list(row.disabled_modules or []),
                        "stored",
                    )
                    if row is not None
                    else builtin_config(code)
                )
        except SQLAlchemyError as e:
            raise DependencyUnavailableError(f"Module configuration unavailable: {e}") from e

        await self._try_set_cached(config)
        return config

    async def set(
        self,
        country_code: str,
        enabled_modules: list[str],
        disabled_modules: list[str] | None = None,
        updated_by: str | None = None,
    ) -> ModuleConfig:
        """Replace a country's configuration.

        Raises:
            ValidationError: Unknown module names, or a module both enabled and disabled.
        """
        code = country_code.upper()
        enabled = _validate_modules(enabled_modules)
        disabled = _validate_modules(disabled_modules or [])
        overlap = sorted(set(enabled) & set(disabled))
        if overlap:
            raise ValidationError(
                f"Modules cannot be both enabled and disabled: {', '.join(overlap)}",
                detail={"overlap": overlap},
            )

        async with get_session() as session:
            row = await session.get(CountryModuleConfig, code)
            if row is None:
                row = CountryModuleConfig(country_code=code)
                session.add(row)
            row.enabled_modules = enabled
            row.disabled_modules = disabled
            row.updated_by = updated_by
            row.updated_at = utcnow()

        await self._try_invalidate(code)
        logger.info(f"Module config updated for {code} by {updated_by}: {len(enabled)} enabled")
        return ModuleConfig(code, enabled, disabled, "stored")

    async def is_module_enabled(self, country_code: str, module: str) -> bool:
        config = await self.get(country_code)
        return config.is_enabled(module)

    async def _try_get_cached(self, code: str) -> ModuleConfig | None:
        if not self.cache_ttl:
            return None
        try:
            payload = await get_module_config_cache(code)
        except (RuntimeError, RedisError):
            return None
        if not payload:
            return None
        try:
            return ModuleConfig(
                code,
                [str(m) for m in payload["enabled_modules"]],
                [str(m) for m in payload.get("disabled_modules", [])],
                str(payload.get("source", "stored")),
            )
        except (KeyError, TypeError):
            return None

    async def _try_set_cached(self, config: ModuleConfig) -> None:
        if not self.cache_ttl:
            return
        try:
            await set_module_config_cache(config.country_code, config.to_dict(), self.cache_ttl)
        except (RuntimeError, RedisError) as e:
            logger.debug(f"Module config cache write skipped: {e}")

    async def _try_invalidate(self, code: str) -> None:
        try:
            await invalidate_module_config_cache(code)
        except RuntimeError:
            return
        except RedisError as e:
            logger.warning(f"Module config cache invalidation failed for {code}: {e}")


_store: ModuleConfigStore | None = None


def get_module_config_store() -> ModuleConfigStore:
    """Get shared store instance."""
    global _store
    if _store is None:
        _store = ModuleConfigStore()
    return _store


async def ensure_type_enabled(country_code: str, request_type: RequestType | None) -> None:
    """Reject request types whose module is disabled for the country.

    Untyped requests are not checked.

    Raises:
        ValidationError: If the module for the type is disabled.
    """
    if request_type is None:
        return
    module = MODULE_FOR_TYPE.get(request_type)
    if module is None:
        return
    if not await get_module_config_store().is_module_enabled(country_code, module):
        raise ValidationError(
            f"{module} is not available in {country_code.upper()}",
            detail={"module": module, "country_code": country_code.upper()},
        )
