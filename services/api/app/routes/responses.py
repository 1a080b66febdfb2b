"""Response endpoints, nested under a request.

POST   /v1/requests/{request_id}/responses               - Submit a response
GET    /v1/requests/{request_id}/responses               - Owner: all; others: own only
PUT    /v1/requests/{request_id}/responses/{response_id} - Edit (responder)
DELETE /v1/requests/{request_id}/responses/{response_id} - Delete (responder or owner)
"""

from fastapi import APIRouter, Depends, Query

from app.routes.deps import get_identity, require_identity
from app.schemas import (
    DeletedResponse,
    Pagination,
    ResponseCreate,
    ResponseCreated,
    ResponseListResponse,
    ResponseOut,
    ResponseUpdate,
)
from app.services import responses as response_service
from app.services.identity import Identity

router = APIRouter()


@router.post("", response_model=ResponseCreated, status_code=201)
async def create_response(
    request_id: str,
    body: ResponseCreate,
    identity: Identity = Depends(require_identity),
) -> ResponseCreated:
    """Submit a response; the result carries the responder's updated entitlements."""
    record, entitlements = await response_service.create_response(identity, request_id, body.model_dump())
    return ResponseCreated(response=ResponseOut.model_validate(record), entitlements=entitlements.to_dict())


@router.get("", response_model=ResponseListResponse)
async def list_responses(
    request_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=response_service.MAX_PAGE_SIZE),
    identity: Identity = Depends(get_identity),
) -> ResponseListResponse:
    result = await response_service.list_responses(identity, request_id, page, limit)
    return ResponseListResponse(
        items=[ResponseOut.model_validate(item) for item in result.items],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=(result.total + result.limit - 1) // result.limit,
        ),
    )


@router.put("/{response_id}", response_model=ResponseOut)
async def update_response(
    request_id: str,
    response_id: str,
    body: ResponseUpdate,
    identity: Identity = Depends(require_identity),
) -> ResponseOut:
    record = await response_service.update_response(
        identity, request_id, response_id, body.model_dump(exclude_unset=True)
    )
    return ResponseOut.model_validate(record)


@router.delete("/{response_id}", response_model=DeletedResponse)
async def delete_response(
    request_id: str,
    response_id: str,
    identity: Identity = Depends(require_identity),
) -> DeletedResponse:
    await response_service.delete_response(identity, request_id, response_id)
    return DeletedResponse(id=response_id)
