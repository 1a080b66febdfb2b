"""Monthly usage counter model.

(user_id, year_month) -> response_count. Rows are created lazily by the
first increment of a period and only ever mutated through
stores.postgres.upsert_increment.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.request import utcnow
from app.stores.postgres import Base


class UsageCounter(Base):
    """Responses submitted by a user in one calendar month."""

    __tablename__ = "usage_monthly"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    year_month: Mapped[int] = mapped_column(Integer, primary_key=True)  # e.g. 202608
    response_count: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<UsageCounter {self.user_id} {self.year_month}={self.response_count}>"
