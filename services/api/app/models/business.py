"""Business profile models.

Read-only snapshot of the external verification/subscription subsystem.
Two classification schemas coexist:
- legacy: `legacy_business_type` / `business_category` strings on the profile,
  plus the global `business_types` table joined by name
- current: per-country `country_business_types` rows with capability flags
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.request import utcnow
from app.stores.postgres import Base


class BusinessType(Base):
    """Global business type (e.g. "Delivery Service", "Product Seller")."""

    __tablename__ = "business_types"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100))

    def __repr__(self) -> str:
        return f"<BusinessType {self.name}>"


class CountryBusinessType(Base):
    """Country-specific business classification with capability flags.

    A NULL flag means "not configured": open-marketplace types treat it as
    allowed.
    """

    __tablename__ = "country_business_types"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    country_code: Mapped[str] = mapped_column(String(2), index=True)
    name: Mapped[str] = mapped_column(String(100))

    # Capability flags
    can_respond_item: Mapped[bool | None] = mapped_column(Boolean)
    can_respond_service: Mapped[bool | None] = mapped_column(Boolean)
    can_respond_rent: Mapped[bool | None] = mapped_column(Boolean)
    can_respond_delivery: Mapped[bool | None] = mapped_column(Boolean)
    can_respond_ride: Mapped[bool | None] = mapped_column(Boolean)
    can_respond_tours: Mapped[bool | None] = mapped_column(Boolean)
    can_respond_events: Mapped[bool | None] = mapped_column(Boolean)
    can_respond_construction: Mapped[bool | None] = mapped_column(Boolean)
    can_respond_education: Mapped[bool | None] = mapped_column(Boolean)
    can_respond_hiring: Mapped[bool | None] = mapped_column(Boolean)

    def __repr__(self) -> str:
        return f"<CountryBusinessType {self.country_code}:{self.name}>"


class BusinessProfile(Base):
    """Verified business as seen by the marketplace (keyed by user id)."""

    __tablename__ = "business_profiles"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    business_name: Mapped[str] = mapped_column(String(200), index=True)
    business_email: Mapped[str | None] = mapped_column(String(200))
    country_code: Mapped[str] = mapped_column(String(2), index=True)

    # Verification / subscription (owned by external subsystem)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending, approved, rejected
    is_subscribed: Mapped[bool] = mapped_column(Boolean, default=False)

    # Category tags (category / subcategory ids)
    categories: Mapped[list[Any] | None] = mapped_column(JSON)

    # Legacy classification
    legacy_business_type: Mapped[str | None] = mapped_column(String(50))  # delivery_service, ride_service, product_selling, both
    business_category: Mapped[str | None] = mapped_column(String(100))
    business_type_id: Mapped[str | None] = mapped_column(ForeignKey("business_types.id"))

    # Current classification
    country_business_type_id: Mapped[str | None] = mapped_column(
        ForeignKey("country_business_types.id")
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    business_type = relationship("BusinessType", lazy="selectin")
    country_business_type = relationship("CountryBusinessType", lazy="selectin")

    def __repr__(self) -> str:
        return f"<BusinessProfile {self.business_name} ({self.country_code})>"
