"""Business capability lookup.

Businesses are classified by two schemas during the migration window:
- legacy: `legacy_business_type` string (delivery_service, ride_service,
  product_selling, both), free-text `business_category`, and the global
  `business_types` name
- current: a per-country `country_business_types` record carrying
  can_respond_* flags

CapabilityLookup hides both behind one interface so the matching engine
only asks "which service tags does this business carry?" and "what do its
country flags allow?".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from app.models import BusinessProfile
from app.services.request_types import RequestType


class BusinessTag(str, Enum):
    """Service tag used by the restricted matching rules."""

    DELIVERY = "delivery"
    RIDE = "ride"
    PRODUCT_SELLER = "product_seller"


# Legacy single-tag values
_LEGACY_TAGS: dict[str, set[BusinessTag]] = {
    "delivery_service": {BusinessTag.DELIVERY},
    "ride_service": {BusinessTag.RIDE},
    "product_selling": {BusinessTag.PRODUCT_SELLER},
    "both": {BusinessTag.DELIVERY, BusinessTag.RIDE, BusinessTag.PRODUCT_SELLER},
}

# Joined business type names (business_types.name)
_TYPE_NAME_TAGS: dict[str, BusinessTag] = {
    "delivery service": BusinessTag.DELIVERY,
    "delivery": BusinessTag.DELIVERY,
    "ride": BusinessTag.RIDE,
    "product seller": BusinessTag.PRODUCT_SELLER,
}

# Free-text business_category values
_CATEGORY_TAGS: dict[str, BusinessTag] = {
    "delivery service": BusinessTag.DELIVERY,
    "delivery": BusinessTag.DELIVERY,
    "ride service": BusinessTag.RIDE,
    "ride": BusinessTag.RIDE,
    "product seller": BusinessTag.PRODUCT_SELLER,
}

# Request type -> country capability flag
_FLAG_FOR_TYPE: dict[RequestType, str] = {
    RequestType.ITEM: "can_respond_item",
    RequestType.SERVICE: "can_respond_service",
    RequestType.RENT: "can_respond_rent",
    RequestType.DELIVERY: "can_respond_delivery",
    RequestType.RIDE: "can_respond_ride",
    RequestType.TOURS: "can_respond_tours",
    RequestType.EVENTS: "can_respond_events",
    RequestType.CONSTRUCTION: "can_respond_construction",
    RequestType.EDUCATION: "can_respond_education",
    RequestType.JOB: "can_respond_hiring",
}

CAPABILITY_FLAGS = tuple(sorted(set(_FLAG_FOR_TYPE.values())))


@dataclass(frozen=True)
class CountryCapabilities:
    """Capability flags from a country-specific classification record.

    None means "not configured".
    """

    country_code: str
    type_name: str
    flags: dict[str, bool | None] = field(default_factory=dict)

    def allows(self, request_type: RequestType) -> bool:
        flag = _FLAG_FOR_TYPE.get(request_type)
        if flag is None:
            # price / other carry no flag
            return True
        value = self.flags.get(flag)
        if request_type == RequestType.RIDE:
            # Rides only when explicitly enabled
            return value is True
        return value is not False


class ClassificationAdapter(Protocol):
    """One backing schema of the capability lookup."""

    def tags(self, profile: BusinessProfile) -> set[BusinessTag]: ...

    def capabilities(self, profile: BusinessProfile) -> CountryCapabilities | None: ...


class LegacyClassificationAdapter:
    """Legacy tag field, free-text category and global business type name."""

    def tags(self, profile: BusinessProfile) -> set[BusinessTag]:
        tags: set[BusinessTag] = set()
        legacy = (profile.legacy_business_type or "").strip().lower()
        tags |= _LEGACY_TAGS.get(legacy, set())

        category = (profile.business_category or "").strip().lower()
        if category in _CATEGORY_TAGS:
            tags.add(_CATEGORY_TAGS[category])

        if profile.business_type is not None:
            name = (profile.business_type.name or "").strip().lower()
            if name in _TYPE_NAME_TAGS:
                tags.add(_TYPE_NAME_TAGS[name])
        return tags

    def capabilities(self, profile: BusinessProfile) -> CountryCapabilities | None:
        return None


class CountryClassificationAdapter:
    """Per-country classification records with capability flags."""

    def tags(self, profile: BusinessProfile) -> set[BusinessTag]:
        return set()

    def capabilities(self, profile: BusinessProfile) -> CountryCapabilities | None:
        cbt = profile.country_business_type
        if cbt is None:
            return None
        return CountryCapabilities(
            country_code=(cbt.country_code or "").upper(),
            type_name=cbt.name,
            flags={flag: getattr(cbt, flag) for flag in CAPABILITY_FLAGS},
        )


class CapabilityLookup:
    """Schema-agnostic view over all classification adapters."""

    def __init__(self, adapters: list[ClassificationAdapter] | None = None):
        self.adapters: list[ClassificationAdapter] = adapters or [
            CountryClassificationAdapter(),
            LegacyClassificationAdapter(),
        ]

    def tags(self, profile: BusinessProfile) -> set[BusinessTag]:
        """Union of service tags across schemas."""
        tags: set[BusinessTag] = set()
        for adapter in self.adapters:
            tags |= adapter.tags(profile)
        return tags

    def has_tag(self, profile: BusinessProfile, tag: BusinessTag) -> bool:
        return tag in self.tags(profile)

    def capabilities(self, profile: BusinessProfile) -> CountryCapabilities | None:
        """Country flags from the first schema that has a record."""
        for adapter in self.adapters:
            caps = adapter.capabilities(profile)
            if caps is not None:
                return caps
        return None


capability_lookup = CapabilityLookup()
