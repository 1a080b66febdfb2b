"""Contact gating filter.

Every read path that returns request records (list, search, detail) runs
its rows through apply_contact_gating():
- contact visible only to the owner or a viewer who already responded
  (the usage quota does not unlock contact details)
- messaging allowed for owner, responders, or viewers whose entitlements
  allow it
- masked phone is removed; email stays visible (asymmetric by policy)
"""

from dataclasses import dataclass
from typing import Any

from app.services.entitlements import Entitlements

PHONE_FIELD = "requester_phone"


@dataclass(frozen=True)
class Viewer:
    """Who is looking at a request record."""

    id: str | None = None
    entitlements: Entitlements | None = None
    has_responded: bool = False


ANONYMOUS = Viewer()


def apply_contact_gating(record: dict[str, Any], viewer: Viewer) -> dict[str, Any]:
    """Return a masked copy of a serialized request record.

    Args:
        record: Serialized request (must carry "owner_id").
        viewer: Viewer identity, entitlements and response history.

    Returns:
        New dict with the phone removed when contact is not visible, plus
        "contact_visible" and "can_message" flags.
    """
    is_owner = viewer.id is not None and record.get("owner_id") == viewer.id
    can_view_contact = is_owner or viewer.has_responded
    can_message = (
        is_owner
        or viewer.has_responded
        or (viewer.entitlements is not None and viewer.entitlements.can_message)
    )

    masked = dict(record)
    if not can_view_contact:
        masked.pop(PHONE_FIELD, None)
    masked["contact_visible"] = can_view_contact
    masked["can_message"] = can_message
    return masked
