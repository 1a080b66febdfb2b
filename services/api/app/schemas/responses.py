"""Schemas for response endpoints (/v1/requests/{id}/responses)."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.common import Pagination
from app.schemas.entitlements import EntitlementsOut


class ResponseCreate(BaseModel):
    message: str = ""
    price: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, max_length=3)
    image_urls: list[str] = Field(default_factory=list)
    location_address: str | None = None
    country_code: str | None = Field(default=None, min_length=2, max_length=2)


class ResponseUpdate(BaseModel):
    message: str | None = None
    price: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, max_length=3)
    image_urls: list[str] | None = None
    location_address: str | None = None


class ResponseOut(BaseModel):
    id: str
    request_id: str
    responder_id: str
    message: str
    price: float | None = None
    currency: str | None = None
    status: str
    image_urls: list[str] = Field(default_factory=list)
    location_address: str | None = None
    country_code: str | None = None
    is_accepted: bool = False
    created_at: datetime
    updated_at: datetime


class ResponseCreated(BaseModel):
    """Created response plus the responder's entitlements after it."""

    response: ResponseOut
    entitlements: EntitlementsOut


class ResponseListResponse(BaseModel):
    items: list[ResponseOut]
    pagination: Pagination
