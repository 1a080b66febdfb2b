"""Request model.

A posted need (item/service/ride/...) awaiting responses from businesses
or other users. Carries the requester's contact details, which read paths
mask through the contact gating filter.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Float, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.services.request_types import RequestStatus
from app.stores.postgres import Base


def generate_id() -> str:
    """Generate unique public ID."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Request(Base):
    """Marketplace request."""

    __tablename__ = "requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    # Owner (external identity)
    owner_id: Mapped[str] = mapped_column(String(128), index=True)

    # Content
    title: Mapped[str] = mapped_column(String(300))
    description: Mapped[str] = mapped_column(Text)
    request_type: Mapped[str | None] = mapped_column(String(20), index=True)  # RequestType value
    category_id: Mapped[str | None] = mapped_column(String(64), index=True)
    subcategory_id: Mapped[str | None] = mapped_column(String(64), index=True)

    # Location
    country_code: Mapped[str] = mapped_column(String(2), index=True)
    city_id: Mapped[str] = mapped_column(String(64), index=True)
    location_address: Mapped[str | None] = mapped_column(String(500))
    location_latitude: Mapped[float | None] = mapped_column(Float)
    location_longitude: Mapped[float | None] = mapped_column(Float)

    # Pricing
    budget: Mapped[float | None] = mapped_column(Float)
    currency: Mapped[str | None] = mapped_column(String(3))
    deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Attachments / free-form payload
    image_urls: Mapped[list[str] | None] = mapped_column(JSON)
    details: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)

    # Requester contact (gated on read)
    requester_phone: Mapped[str | None] = mapped_column(String(50))
    requester_email: Mapped[str | None] = mapped_column(String(200))

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), index=True, default=RequestStatus.ACTIVE.value)
    # Validated link to responses.id (no FK: responses already reference requests)
    accepted_response_id: Mapped[str | None] = mapped_column(String(36), index=True)

    # Urgent boost (expiry evaluated at read time)
    is_urgent: Mapped[bool] = mapped_column(Boolean, default=False)
    urgent_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    urgent_payment_ref: Mapped[str | None] = mapped_column(String(36))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Request {self.id} {self.request_type} {self.status}>"
