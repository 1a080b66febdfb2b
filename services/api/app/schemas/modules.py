"""Schemas for country module configuration and admin matching tools."""

from pydantic import BaseModel, Field


class ModuleConfigOut(BaseModel):
    country_code: str
    enabled_modules: list[str]
    disabled_modules: list[str]
    total_modules: int
    source: str


class ModuleConfigUpdate(BaseModel):
    enabled_modules: list[str]
    disabled_modules: list[str] = Field(default_factory=list)


class MatchedBusinessOut(BaseModel):
    business_id: str
    business_name: str
    notification_reason: str


class MatchPreviewResponse(BaseModel):
    request_id: str
    total: int
    businesses: list[MatchedBusinessOut]


class CanRespondOut(BaseModel):
    business_id: str
    request_type: str | None = None
    can_respond: bool
    reason: str
