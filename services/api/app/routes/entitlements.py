"""Entitlement endpoints.

GET /v1/entitlements/me - Caller's monthly quota and derived permissions
"""

from fastapi import APIRouter, Depends

from app.routes.deps import require_identity
from app.schemas import EntitlementsOut
from app.services.entitlements import get_entitlements
from app.services.identity import Identity

router = APIRouter()


@router.get("/me", response_model=EntitlementsOut)
async def my_entitlements(identity: Identity = Depends(require_identity)) -> EntitlementsOut:
    entitlements = await get_entitlements(identity.user_id, identity.role)
    return EntitlementsOut(**entitlements.to_dict())
