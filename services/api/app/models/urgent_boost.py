"""Urgent boost transaction model.

Pending payment record created when an owner starts an urgent boost. The
payment subsystem settles it; confirmation flips the request's urgent flag.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.request import generate_id, utcnow
from app.stores.postgres import Base

PURPOSE_URGENT_BOOST = "urgent_boost"
TX_PENDING = "pending"
TX_PAID = "paid"


class UrgentBoostTransaction(Base):
    """Payment transaction for an urgent boost."""

    __tablename__ = "urgent_boost_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    request_id: Mapped[str] = mapped_column(
        ForeignKey("requests.id", ondelete="CASCADE"),
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    country_code: Mapped[str] = mapped_column(String(2))

    purpose: Mapped[str] = mapped_column(String(30), default=PURPOSE_URGENT_BOOST)
    amount: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3))
    status: Mapped[str] = mapped_column(String(20), default=TX_PENDING)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<UrgentBoostTransaction {self.id} {self.amount} {self.currency} {self.status}>"
