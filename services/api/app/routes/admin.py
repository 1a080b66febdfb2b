"""Admin endpoints for marketplace operations.

All endpoints require a privileged role (PRIVILEGED_ROLES).

PUT /v1/admin/modules/{country_code}             - Replace a country's module config
GET /v1/admin/requests/{request_id}/matches      - Preview dispatch targets
GET /v1/admin/businesses/{business_id}/can-respond - Single-business capability check
"""

import logging

from fastapi import APIRouter, Depends, Path, Query

from app.routes.deps import require_privileged
from app.schemas import (
    CanRespondOut,
    MatchedBusinessOut,
    MatchPreviewResponse,
    ModuleConfigOut,
    ModuleConfigUpdate,
)
from app.services.identity import Identity
from app.services.matching import can_business_respond_to_request, preview_request_matches
from app.services.module_config import get_module_config_store
from app.services.request_types import normalize_request_type

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


@router.put("/modules/{country_code}", response_model=ModuleConfigOut)
async def update_country_modules(
    body: ModuleConfigUpdate,
    country_code: str = Path(min_length=2, max_length=2),
    identity: Identity = Depends(require_privileged),
) -> ModuleConfigOut:
    """Replace the enabled/disabled module lists for a country."""
    config = await get_module_config_store().set(
        country_code,
        body.enabled_modules,
        body.disabled_modules,
        updated_by=identity.user_id,
    )
    return ModuleConfigOut(**config.to_dict())


@router.get("/requests/{request_id}/matches", response_model=MatchPreviewResponse)
async def preview_matches(
    request_id: str,
    identity: Identity = Depends(require_privileged),
) -> MatchPreviewResponse:
    """Businesses a request would be dispatched to. Sends nothing."""
    matches = await preview_request_matches(request_id)
    logger.info(f"Match preview for request {request_id} by {identity.user_id}: {len(matches)} businesses")
    return MatchPreviewResponse(
        request_id=request_id,
        total=len(matches),
        businesses=[MatchedBusinessOut(**m.to_dict()) for m in matches],
    )


@router.get("/businesses/{business_id}/can-respond", response_model=CanRespondOut)
async def check_business_capability(
    business_id: str,
    request_type: str | None = Query(default=None, examples=["ride", "delivery", "item"]),
    category_id: str | None = Query(default=None),
    identity: Identity = Depends(require_privileged),
) -> CanRespondOut:
    decision = await can_business_respond_to_request(business_id, request_type, category_id)
    rt = normalize_request_type(request_type)
    return CanRespondOut(
        business_id=business_id,
        request_type=rt.value if rt else request_type,
        can_respond=decision.can_respond,
        reason=decision.reason,
    )
