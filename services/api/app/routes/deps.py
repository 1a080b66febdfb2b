"""Route dependencies: caller identity from upstream auth headers."""

from fastapi import Depends, Header

from app.services.errors import PermissionDeniedError, UnauthenticatedError
from app.services.identity import Identity


async def get_identity(
    user_id: str | None = Header(default=None, alias="X-User-Id"),
    role: str | None = Header(default=None, alias="X-User-Role"),
    country: str | None = Header(default=None, alias="X-Country-Code"),
) -> Identity:
    """Identity forwarded by the auth collaborator (anonymous if absent)."""
    return Identity(
        user_id=(user_id or "").strip() or None,
        role=(role or "").strip().lower() or None,
        country_code=(country or "").strip().upper() or None,
    )


async def require_identity(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_authenticated:
        raise UnauthenticatedError("Authentication required")
    return identity


async def require_privileged(identity: Identity = Depends(require_identity)) -> Identity:
    if not identity.is_privileged:
        raise PermissionDeniedError("Admin role required")
    return identity
