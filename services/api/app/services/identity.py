"""Caller identity resolved by the external auth collaborator."""

from dataclasses import dataclass

from app.settings import get_settings


@dataclass(frozen=True)
class Identity:
    user_id: str | None = None
    role: str | None = None
    country_code: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def is_privileged(self) -> bool:
        return self.role is not None and self.role in get_settings().privileged_roles

    @property
    def effective_country(self) -> str:
        return (self.country_code or get_settings().default_country_code).upper()
