"""Country module configuration model.

Which request modules (item_request, ride_sharing, ...) are enabled per
country. Absent rows fall back to built-in defaults.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.request import utcnow
from app.stores.postgres import Base


class CountryModuleConfig(Base):
    """Enabled/disabled modules for one country."""

    __tablename__ = "country_module_configs"

    country_code: Mapped[str] = mapped_column(String(2), primary_key=True)
    enabled_modules: Mapped[list[str]] = mapped_column(JSON, default=list)
    disabled_modules: Mapped[list[str]] = mapped_column(JSON, default=list)
    updated_by: Mapped[str | None] = mapped_column(String(128))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<CountryModuleConfig {self.country_code} enabled={len(self.enabled_modules or [])}>"
