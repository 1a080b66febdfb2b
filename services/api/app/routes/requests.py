"""Request endpoints.

GET  /v1/requests                      - Filtered list (urgent first)
GET  /v1/requests/search               - Title/description search
GET  /v1/requests/mine                 - Caller's own requests
GET  /v1/requests/{id}                 - Detail with viewer context
POST /v1/requests                      - Create (dispatches to businesses)
PUT  /v1/requests/{id}                 - Update content
DELETE /v1/requests/{id}               - Delete with responses
PUT  /v1/requests/{id}/accept-response - Accept a response
PUT  /v1/requests/{id}/clear-accepted  - Clear acceptance
PUT  /v1/requests/{id}/mark-completed  - Complete
POST /v1/requests/{id}/urgent-boost/{start,confirm,clear}

Routers are thin: call services for business logic.
"""

from fastapi import APIRouter, Depends, Query

from app.schemas import (
    AcceptResponseBody,
    DeletedResponse,
    Pagination,
    RequestCreate,
    RequestListResponse,
    RequestOut,
    RequestUpdate,
    UrgentBoostConfirm,
    UrgentBoostQuoteOut,
)
from app.routes.deps import get_identity, require_identity
from app.services import requests as request_service
from app.services.identity import Identity
from app.services.requests import RequestFilters, RequestPage

router = APIRouter()


def _list_response(page: RequestPage) -> RequestListResponse:
    return RequestListResponse(
        items=[RequestOut.model_validate(item) for item in page.items],
        pagination=Pagination(
            page=page.page,
            limit=page.limit,
            total=page.total,
            total_pages=page.total_pages,
        ),
        entitlements=page.viewer_entitlements.to_dict() if page.viewer_entitlements else None,
    )


def _filters(
    category_id: str | None = Query(default=None),
    subcategory_id: str | None = Query(default=None),
    city_id: str | None = Query(default=None),
    country_code: str | None = Query(default=None, min_length=2, max_length=2),
    status: str | None = Query(default=None, description="active | closed | completed"),
    owner_id: str | None = Query(default=None),
    has_accepted: bool | None = Query(default=None),
    request_type: str | None = Query(default=None),
) -> RequestFilters:
    return RequestFilters(
        category_id=category_id,
        subcategory_id=subcategory_id,
        city_id=city_id,
        country_code=country_code,
        status=status,
        owner_id=owner_id,
        has_accepted=has_accepted,
        request_type=request_type,
    )


@router.get("", response_model=RequestListResponse, response_model_exclude_unset=True)
async def list_requests(
    filters: RequestFilters = Depends(_filters),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc|ASC|DESC)$"),
    identity: Identity = Depends(get_identity),
) -> RequestListResponse:
    """List requests; requester phone is removed unless the viewer may see it."""
    result = await request_service.list_requests(identity, filters, page, limit, sort_by, sort_order)
    return _list_response(result)


@router.get("/search", response_model=RequestListResponse, response_model_exclude_unset=True)
async def search_requests(
    q: str | None = Query(default=None, description="Search text (title or description)"),
    filters: RequestFilters = Depends(_filters),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc|ASC|DESC)$"),
    identity: Identity = Depends(get_identity),
) -> RequestListResponse:
    result = await request_service.search_requests(identity, q, filters, page, limit, sort_by, sort_order)
    return _list_response(result)


@router.get("/mine", response_model=RequestListResponse, response_model_exclude_unset=True)
async def my_requests(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    identity: Identity = Depends(require_identity),
) -> RequestListResponse:
    result = await request_service.list_my_requests(identity, page, limit)
    return _list_response(result)


@router.get("/{request_id}", response_model=RequestOut, response_model_exclude_unset=True)
async def get_request(request_id: str, identity: Identity = Depends(get_identity)) -> RequestOut:
    return RequestOut.model_validate(await request_service.get_request(identity, request_id))


@router.post("", response_model=RequestOut, response_model_exclude_unset=True, status_code=201)
async def create_request(body: RequestCreate, identity: Identity = Depends(require_identity)) -> RequestOut:
    """Create a request; matching businesses are notified best-effort."""
    record = await request_service.create_request(identity, body.model_dump())
    return RequestOut.model_validate(record)


@router.put("/{request_id}", response_model=RequestOut, response_model_exclude_unset=True)
async def update_request(
    request_id: str,
    body: RequestUpdate,
    identity: Identity = Depends(require_identity),
) -> RequestOut:
    record = await request_service.update_request(identity, request_id, body.model_dump(exclude_unset=True))
    return RequestOut.model_validate(record)


@router.delete("/{request_id}", response_model=DeletedResponse)
async def delete_request(request_id: str, identity: Identity = Depends(require_identity)) -> DeletedResponse:
    await request_service.delete_request(identity, request_id)
    return DeletedResponse(id=request_id)


@router.put("/{request_id}/accept-response", response_model=RequestOut, response_model_exclude_unset=True)
async def accept_response(
    request_id: str,
    body: AcceptResponseBody,
    identity: Identity = Depends(require_identity),
) -> RequestOut:
    record = await request_service.accept_response(identity, request_id, body.response_id)
    return RequestOut.model_validate(record)


@router.put("/{request_id}/clear-accepted", response_model=RequestOut, response_model_exclude_unset=True)
async def clear_accepted(request_id: str, identity: Identity = Depends(require_identity)) -> RequestOut:
    return RequestOut.model_validate(await request_service.clear_accepted(identity, request_id))


@router.put("/{request_id}/mark-completed", response_model=RequestOut, response_model_exclude_unset=True)
async def mark_completed(request_id: str, identity: Identity = Depends(require_identity)) -> RequestOut:
    return RequestOut.model_validate(await request_service.mark_completed(identity, request_id))


@router.post("/{request_id}/urgent-boost/start", response_model=UrgentBoostQuoteOut, status_code=201)
async def start_urgent_boost(
    request_id: str,
    identity: Identity = Depends(require_identity),
) -> UrgentBoostQuoteOut:
    """Create a pending boost payment; settle it with the payment subsystem."""
    quote = await request_service.start_urgent_boost(identity, request_id)
    return UrgentBoostQuoteOut(
        transaction_id=quote.transaction_id,
        request_id=quote.request_id,
        amount=quote.amount,
        currency=quote.currency,
        status=quote.status,
    )


@router.post("/{request_id}/urgent-boost/confirm", response_model=RequestOut, response_model_exclude_unset=True)
async def confirm_urgent_boost(
    request_id: str,
    body: UrgentBoostConfirm,
    identity: Identity = Depends(require_identity),
) -> RequestOut:
    record = await request_service.confirm_urgent_boost(identity, request_id, body.transaction_id)
    return RequestOut.model_validate(record)


@router.post("/{request_id}/urgent-boost/clear", response_model=RequestOut, response_model_exclude_unset=True)
async def clear_urgent_boost(request_id: str, identity: Identity = Depends(require_identity)) -> RequestOut:
    return RequestOut.model_validate(await request_service.clear_urgent_boost(identity, request_id))
