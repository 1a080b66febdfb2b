"""Schemas for entitlement reads."""

from pydantic import BaseModel


class EntitlementsOut(BaseModel):
    """A user's monthly response quota and derived permissions."""

    user_id: str
    audience: str
    is_subscribed: bool
    period: int
    response_count: int
    response_limit: int
    remaining_responses: int
    can_respond: bool
    can_view_contact: bool
    can_message: bool
