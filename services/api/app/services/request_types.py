"""Canonical request types and statuses.

Clients send request types in many historical spellings (qualified enum names
`RequestType.item`, `item_request`, legacy `hiring`, ...). Every call site
goes through normalize_request_type() so the mapping lives in one place.
"""

from enum import Enum
from typing import Any


class RequestType(str, Enum):
    """Canonical request type."""

    ITEM = "item"
    SERVICE = "service"
    RIDE = "ride"
    RENT = "rent"
    DELIVERY = "delivery"
    JOB = "job"
    PRICE = "price"
    TOURS = "tours"
    EVENTS = "events"
    CONSTRUCTION = "construction"
    EDUCATION = "education"
    OTHER = "other"


class RequestStatus(str, Enum):
    """Request lifecycle status."""

    ACTIVE = "active"
    CLOSED = "closed"
    COMPLETED = "completed"


# Alternate spellings -> canonical value
_ALIASES = {
    "item_request": "item",
    "items": "item",
    "service_request": "service",
    "services": "service",
    "ride_request": "ride",
    "ride_sharing": "ride",
    "rent_request": "rent",
    "rental_request": "rent",
    "rental": "rent",
    "delivery_request": "delivery",
    "price_request": "price",
    "price_comparison": "price",
    # Legacy to new mapping
    "hiring": "job",
    "job_request": "job",
    "jobs": "job",
    "tour": "tours",
    "event": "events",
}

_CANONICAL = {t.value: t for t in RequestType}


def normalize_request_type(value: Any) -> RequestType | None:
    """Map a free-form request type onto the canonical enum.

    Returns None for missing or unrecognized values; callers decide whether
    that is an error or a "derive later" signal.

    Examples:
        >>> normalize_request_type("RequestType.item")
        <RequestType.ITEM: 'item'>
        >>> normalize_request_type("hiring")
        <RequestType.JOB: 'job'>
        >>> normalize_request_type("spaceship") is None
        True
    """
    if value is None:
        return None
    if isinstance(value, RequestType):
        return value
    s = str(value).strip()
    if not s:
        return None
    # Qualified enum name: "RequestType.item"
    if s.lower().startswith("requesttype."):
        s = s.split(".")[-1]
    s = s.lower().replace("-", "_").replace(" ", "_")
    s = _ALIASES.get(s, s)
    return _CANONICAL.get(s)


def resolve_request_type(request_type: Any, metadata: dict[str, Any] | None = None) -> RequestType | None:
    """Resolve the type of a new request from its payload.

    Order: explicit type, then metadata.request_type, then metadata shape
    (pickup + destination implies a ride).
    """
    resolved = normalize_request_type(request_type)
    if resolved is None and metadata:
        resolved = normalize_request_type(metadata.get("request_type"))
    if resolved is None and metadata and metadata.get("pickup") and metadata.get("destination"):
        resolved = RequestType.RIDE
    return resolved
