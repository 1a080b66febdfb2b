"""Matching / dispatch engine.

Selects the businesses to notify about a new request. Candidates are
verified, approved, subscribed businesses in the request's country. Rules,
first match wins:
1. delivery -> businesses tagged delivery
2. ride -> businesses tagged ride
3. price -> businesses tagged product seller
4. everything else -> every candidate (open marketplace), ranked
   category match > subcategory match > general, minus businesses whose
   country classification record disables the request type. Legacy /
   global-only records are never excluded by flags.

Dispatch is best-effort: matching or delivery failures are logged and
swallowed, never retried, never surfaced to the request creator.
"""

from dataclasses import dataclass, field
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.models import BusinessProfile, Request
from app.services.capabilities import BusinessTag, CapabilityLookup, capability_lookup
from app.services.errors import DependencyUnavailableError, NotFoundError
from app.services.notifications import NotificationDispatcher, RequestSummary, get_dispatcher
from app.services.request_types import RequestType, normalize_request_type
from app.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")

# Notification reasons
REASON_DELIVERY = "delivery_service"
REASON_RIDE = "ride_service"
REASON_PRODUCT_SELLER = "product_seller"
REASON_CATEGORY = "category_match"
REASON_SUBCATEGORY = "subcategory_match"
REASON_GENERAL = "general_business"

_PRIORITY = {REASON_CATEGORY: 1, REASON_SUBCATEGORY: 2, REASON_GENERAL: 3}

# Types restricted to tagged businesses
_RESTRICTED: dict[RequestType, tuple[BusinessTag, str]] = {
    RequestType.DELIVERY: (BusinessTag.DELIVERY, REASON_DELIVERY),
    RequestType.RIDE: (BusinessTag.RIDE, REASON_RIDE),
    RequestType.PRICE: (BusinessTag.PRODUCT_SELLER, REASON_PRODUCT_SELLER),
}

# Types open to every business unless country flags say otherwise
COMMON_TYPES = frozenset(
    {
        RequestType.ITEM,
        RequestType.SERVICE,
        RequestType.RENT,
        RequestType.TOURS,
        RequestType.EVENTS,
        RequestType.CONSTRUCTION,
        RequestType.EDUCATION,
        RequestType.JOB,
    }
)


@dataclass
class MatchedBusiness:
    """A business selected for notification."""

    business_id: str
    business_name: str
    notification_reason: str
    business_email: str | None = None
    categories: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "business_id": self.business_id,
            "business_name": self.business_name,
            "notification_reason": self.notification_reason,
        }


@dataclass(frozen=True)
class CapabilityDecision:
    """Whether a single business may respond to a request type."""

    can_respond: bool
    reason: str


def _match(profile: BusinessProfile, reason: str) -> MatchedBusiness:
    return MatchedBusiness(
        business_id=profile.id,
        business_name=profile.business_name,
        notification_reason=reason,
        business_email=profile.business_email,
        categories=list(profile.categories or []),
    )


def _category_reason(
    categories: list[Any] | None,
    category_id: str | None,
    subcategory_id: str | None,
) -> str:
    tags = {str(c) for c in categories or []}
    if category_id and str(category_id) in tags:
        return REASON_CATEGORY
    if subcategory_id and str(subcategory_id) in tags:
        return REASON_SUBCATEGORY
    return REASON_GENERAL


def select_businesses(
    profiles: list[BusinessProfile],
    request_type: RequestType | str | None,
    category_id: str | None,
    subcategory_id: str | None,
    country_code: str,
    lookup: CapabilityLookup = capability_lookup,
) -> list[MatchedBusiness]:
    """Apply the matching rules to already-eligible candidates.

    Args:
        profiles: Verified + subscribed businesses in the request's country.
        request_type: Request type (unrecognized types match as "item").
        category_id: Request category.
        subcategory_id: Request subcategory.
        country_code: Request country.
        lookup: Capability lookup over the classification schemas.

    Returns:
        Matched businesses, ranked for the open-marketplace rule.
    """
    rt = normalize_request_type(request_type) or RequestType.ITEM
    country = (country_code or "").upper()

    restricted = _RESTRICTED.get(rt)
    if restricted is not None:
        tag, reason = restricted
        return [_match(p, reason) for p in profiles if lookup.has_tag(p, tag)]

    matched: list[MatchedBusiness] = []
    for profile in profiles:
        caps = lookup.capabilities(profile)
        if caps is not None:
            if caps.country_code and caps.country_code != country:
                continue
            if not caps.allows(rt):
                continue
        matched.append(_match(profile, _category_reason(profile.categories, category_id, subcategory_id)))

    matched.sort(key=lambda m: (_PRIORITY[m.notification_reason], m.business_name.lower()))
    return matched


async def load_candidate_businesses(country_code: str) -> list[BusinessProfile]:
    """Verified, approved, subscribed businesses in a country.

    Raises:
        DependencyUnavailableError: If the business-profile source is unreachable.
    """
    try:
        async with get_session() as session:
            result = await session.execute(
                select(BusinessProfile)
                .where(BusinessProfile.country_code == country_code.upper())
                .where(BusinessProfile.is_verified.is_(True))
                .where(BusinessProfile.status == "approved")
                .where(BusinessProfile.is_subscribed.is_(True))
                .order_by(BusinessProfile.business_name)
            )
            return list(result.scalars().all())
    except SQLAlchemyError as e:
        raise DependencyUnavailableError(f"Business profile source unavailable: {e}") from e


async def get_businesses_to_notify(
    request_type: RequestType | str | None,
    category_id: str | None,
    subcategory_id: str | None,
    country_code: str,
) -> list[MatchedBusiness]:
    """Businesses that should hear about a request with these attributes."""
    profiles = await load_candidate_businesses(country_code)
    matches = select_businesses(profiles, request_type, category_id, subcategory_id, country_code)
    preferred = sum(1 for m in matches if m.notification_reason in (REASON_CATEGORY, REASON_SUBCATEGORY))
    logger.info(
        f"Matched {len(matches)} businesses for type={request_type} country={country_code} "
        f"({preferred} with category preference)"
    )
    return matches


async def dispatch_new_request(
    request: Request,
    dispatcher: NotificationDispatcher | None = None,
) -> list[MatchedBusiness]:
    """Match and notify businesses about a newly created request.

    Never raises: the request already exists when this runs.

    Returns:
        Businesses that were matched (empty on matching failure).
    """
    dispatcher = dispatcher or get_dispatcher()
    try:
        matches = await get_businesses_to_notify(
            request.request_type,
            request.category_id,
            request.subcategory_id,
            request.country_code,
        )
    except Exception:
        logger.exception(f"Business matching failed for request {request.id} (request still created)")
        return []

    if not matches:
        logger.info(f"No businesses to notify for request {request.id}")
        return matches

    summary = RequestSummary.from_request(request)
    for match in matches:
        try:
            await dispatcher.notify_business(match.business_id, summary, match.notification_reason)
        except Exception:
            logger.warning(
                f"Failed to notify business {match.business_id} about request {request.id}",
                exc_info=True,
            )
    return matches


def decide_business_response(
    profile: BusinessProfile | None,
    request_type: RequestType | str | None,
    lookup: CapabilityLookup = capability_lookup,
) -> CapabilityDecision:
    """Single-business version of the matching rules.

    Args:
        profile: Verified, approved profile of the business (None if none).
        request_type: Request type.
        lookup: Capability lookup over the classification schemas.
    """
    if profile is None:
        return CapabilityDecision(False, "not_verified_business")

    rt = normalize_request_type(request_type)

    if rt == RequestType.DELIVERY:
        if lookup.has_tag(profile, BusinessTag.DELIVERY):
            return CapabilityDecision(True, "delivery_service_authorized")
        return CapabilityDecision(False, "delivery_requires_delivery_service")

    if rt == RequestType.RIDE:
        if lookup.has_tag(profile, BusinessTag.RIDE):
            return CapabilityDecision(True, "ride_service_authorized")
        return CapabilityDecision(False, "ride_requests_for_ride_services_only")

    if rt in COMMON_TYPES:
        caps = lookup.capabilities(profile)
        if caps is None:
            return CapabilityDecision(True, "open_to_all_businesses")
        if caps.allows(rt):
            return CapabilityDecision(True, "country_capability_enabled")
        return CapabilityDecision(False, "country_capability_disabled")

    return CapabilityDecision(True, "general_business_request")


async def can_business_respond_to_request(
    business_id: str,
    request_type: RequestType | str | None,
    category_id: str | None = None,
) -> CapabilityDecision:
    """Check whether a business may respond to a request of this type.

    `category_id` is accepted for parity with the matching input; category
    only ranks matches and never restricts eligibility.

    Raises:
        DependencyUnavailableError: If the business-profile source is unreachable.
    """
    try:
        async with get_session() as session:
            result = await session.execute(
                select(BusinessProfile)
                .where(BusinessProfile.id == business_id)
                .where(BusinessProfile.is_verified.is_(True))
                .where(BusinessProfile.status == "approved")
            )
            profile = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        raise DependencyUnavailableError(f"Business profile source unavailable: {e}") from e

    decision = decide_business_response(profile, request_type)
    logger.info(
        f"Capability check business={business_id} type={request_type} category={category_id}: "
        f"{decision.reason}"
    )
    return decision


async def preview_request_matches(request_id: str) -> list[MatchedBusiness]:
    """Businesses an existing request would be dispatched to (no notifications sent)."""
    async with get_session() as session:
        request = await session.get(Request, request_id)
    if request is None:
        raise NotFoundError("Request not found", detail={"request_id": request_id})
    return await get_businesses_to_notify(
        request.request_type,
        request.category_id,
        request.subcategory_id,
        request.country_code,
    )
