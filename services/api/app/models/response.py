"""Response model.

An offer submitted against a Request. At most one per (request, responder),
enforced by a unique constraint so concurrent duplicates cannot both land.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.request import generate_id, utcnow
from app.stores.postgres import Base

UNIQUE_RESPONDER_CONSTRAINT = "uq_responses_request_responder"


class Response(Base):
    """Offer against a request."""

    __tablename__ = "responses"
    __table_args__ = (
        UniqueConstraint("request_id", "responder_id", name=UNIQUE_RESPONDER_CONSTRAINT),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    # Relations
    request_id: Mapped[str] = mapped_column(
        ForeignKey("requests.id", ondelete="CASCADE"),
        index=True,
    )
    responder_id: Mapped[str] = mapped_column(String(128), index=True)

    # Offer
    message: Mapped[str] = mapped_column(Text)
    price: Mapped[float | None] = mapped_column(Float)
    currency: Mapped[str | None] = mapped_column(String(3))
    status: Mapped[str] = mapped_column(String(20), default="pending")

    # Attachments / location
    image_urls: Mapped[list[str] | None] = mapped_column(JSON)
    location_address: Mapped[str | None] = mapped_column(String(500))
    country_code: Mapped[str | None] = mapped_column(String(2))

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
        return f"<Response {self.id} on {self.request_id} by {self.responder_id}>"
