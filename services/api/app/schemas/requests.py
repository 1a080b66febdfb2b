"""Schemas for request endpoints (/v1/requests)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.schemas.common import Pagination
from app.schemas.entitlements import EntitlementsOut


class RequestCreate(BaseModel):
    """Body for POST /v1/requests.

    request_type accepts historical spellings (e.g. "RequestType.item",
    "rental_request", "hiring"); it may also come via metadata.request_type,
    and metadata with pickup + destination implies a ride.
    """

    title: str = Field(default="", max_length=300)
    description: str = ""
    request_type: str | None = None
    category_id: str | None = None
    subcategory_id: str | None = None
    city_id: str | None = None
    country_code: str | None = Field(default=None, min_length=2, max_length=2)
    location_address: str | None = None
    location_latitude: float | None = None
    location_longitude: float | None = None
    budget: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, max_length=3)
    deadline: datetime | None = None
    image_urls: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None
    requester_phone: str | None = None
    requester_email: str | None = None


class RequestUpdate(BaseModel):
    """Body for PUT /v1/requests/{id}. Status is not updatable here."""

    title: str | None = Field(default=None, max_length=300)
    description: str | None = None
    category_id: str | None = None
    subcategory_id: str | None = None
    city_id: str | None = None
    budget: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, max_length=3)
    deadline: datetime | None = None
    location_address: str | None = None
    location_latitude: float | None = None
    location_longitude: float | None = None
    image_urls: list[str] | None = None
    metadata: dict[str, Any] | None = None
    status: str | None = None


class ViewerContext(BaseModel):
    is_owner: bool
    has_responded: bool
    response_id: str | None = None
    entitlements: EntitlementsOut | None = None


class RequestOut(BaseModel):
    """Request record after contact gating.

    requester_phone is absent (not null) when contact is not visible.
    """

    id: str
    owner_id: str
    title: str
    description: str
    request_type: str | None = None
    category_id: str | None = None
    subcategory_id: str | None = None
    country_code: str
    city_id: str
    location_address: str | None = None
    location_latitude: float | None = None
    location_longitude: float | None = None
    budget: float | None = None
    currency: str | None = None
    deadline: datetime | None = None
    image_urls: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None
    requester_phone: str | None = None
    requester_email: str | None = None
    status: str
    accepted_response_id: str | None = None
    is_urgent: bool = False
    urgent_until: datetime | None = None
    created_at: datetime
    updated_at: datetime
    contact_visible: bool
    can_message: bool
    has_responded: bool | None = None
    matched_businesses: int | None = None
    viewer_context: ViewerContext | None = None


class RequestListResponse(BaseModel):
    items: list[RequestOut]
    pagination: Pagination
    entitlements: EntitlementsOut | None = None


class AcceptResponseBody(BaseModel):
    response_id: str


class UrgentBoostQuoteOut(BaseModel):
    """Pending boost payment to be settled by the payment subsystem."""

    transaction_id: str
    request_id: str
    amount: float
    currency: str
    status: str


class UrgentBoostConfirm(BaseModel):
    transaction_id: str | None = None
