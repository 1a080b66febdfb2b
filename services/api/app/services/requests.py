"""Request service: lifecycle and read paths.

State machine:
- create -> active
- acceptResponse: sets accepted_response_id, active -> closed (other statuses
  unchanged); re-pointing to another response is allowed
- clearAccepted: clears the pointer, closed -> active
- markCompleted: requires an acceptance, idempotent
- urgent boost start/confirm/clear: orthogonal flag, expiry evaluated at
  read time (no sweep)

Every read path that returns request records goes through _gate_page() or
_gate_one(), which apply the contact gating filter for the viewer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Request, Response, UrgentBoostTransaction
from app.models.request import utcnow
from app.models.urgent_boost import PURPOSE_URGENT_BOOST, TX_PAID, TX_PENDING
from app.services.entitlements import Entitlements, get_entitlements
from app.services.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.services.gating import Viewer, apply_contact_gating
from app.services.identity import Identity
from app.services.matching import dispatch_new_request
from app.services.module_config import ensure_type_enabled
from app.services.notifications import NotificationDispatcher, get_dispatcher, notify_user_safely
from app.services.request_types import RequestStatus, RequestType, normalize_request_type, resolve_request_type
from app.settings import get_settings
from app.stores.postgres import get_session
from app.stores.redis import LockNotAcquired, optional_lock

logger = logging.getLogger("uvicorn.error")

SORT_COLUMNS = {
    "created_at": Request.created_at,
    "updated_at": Request.updated_at,
    "title": Request.title,
    "budget": Request.budget,
}

# Fields the owner may change after creation
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "category_id",
        "subcategory_id",
        "city_id",
        "budget",
        "currency",
        "deadline",
        "location_address",
        "location_latitude",
        "location_longitude",
        "image_urls",
        "metadata",
    }
)


@dataclass
class RequestFilters:
    category_id: str | None = None
    subcategory_id: str | None = None
    city_id: str | None = None
    country_code: str | None = None
    status: str | None = None
    owner_id: str | None = None
    has_accepted: bool | None = None
    request_type: str | None = None


@dataclass
class RequestPage:
    items: list[dict[str, Any]]
    total: int
    page: int
    limit: int
    viewer_entitlements: Entitlements | None = None

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass
class UrgentBoostQuote:
    transaction_id: str
    request_id: str
    amount: float
    currency: str
    status: str


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite returns naive datetimes; everything is stored in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_urgent_active(request: Request, now: datetime | None = None) -> bool:
    """Urgent flag set and not expired at `now`."""
    if not request.is_urgent:
        return False
    until = as_utc(request.urgent_until)
    return until is None or until > (now or utcnow())


def urgent_rank(now: datetime):
    """0 for urgent-and-unexpired rows, 1 otherwise."""
    active = and_(
        Request.is_urgent.is_(True),
        or_(Request.urgent_until.is_(None), Request.urgent_until > now),
    )
    return case((active, 0), else_=1)


def serialize_request(request: Request, now: datetime | None = None) -> dict[str, Any]:
    """Full request record (before gating)."""
    return {
        "id": request.id,
        "owner_id": request.owner_id,
        "title": request.title,
        "description": request.description,
        "request_type": request.request_type,
        "category_id": request.category_id,
        "subcategory_id": request.subcategory_id,
        "country_code": request.country_code,
        "city_id": request.city_id,
        "location_address": request.location_address,
        "location_latitude": request.location_latitude,
        "location_longitude": request.location_longitude,
        "budget": request.budget,
        "currency": request.currency,
        "deadline": as_utc(request.deadline),
        "image_urls": list(request.image_urls or []),
        "metadata": request.details,
        "requester_phone": request.requester_phone,
        "requester_email": request.requester_email,
        "status": request.status,
        "accepted_response_id": request.accepted_response_id,
        "is_urgent": is_urgent_active(request, now),
        "urgent_until": as_utc(request.urgent_until),
        "created_at": as_utc(request.created_at),
        "updated_at": as_utc(request.updated_at),
    }


# ============================================================
# Helpers
# ============================================================


async def _get_or_404(session: AsyncSession, request_id: str, for_update: bool = False) -> Request:
    stmt = select(Request).where(Request.id == request_id)
    if for_update:
        stmt = stmt.with_for_update()
    request = (await session.execute(stmt)).scalar_one_or_none()
    if request is None:
        raise NotFoundError("Request not found", detail={"request_id": request_id})
    return request


def _require_owner(request: Request, identity: Identity, action: str) -> None:
    if request.owner_id == identity.user_id or identity.is_privileged:
        return
    raise PermissionDeniedError(f"Only the request owner can {action}")


async def _viewer_entitlements(identity: Identity) -> Entitlements | None:
    if not identity.is_authenticated:
        return None
    return await get_entitlements(identity.user_id, identity.role)


async def _responded_ids(session: AsyncSession, user_id: str | None, request_ids: list[str]) -> dict[str, str]:
    """request_id -> response_id for requests the user responded to."""
    if not user_id or not request_ids:
        return {}
    rows = await session.execute(
        select(Response.request_id, Response.id).where(
            Response.responder_id == user_id,
            Response.request_id.in_(request_ids),
        )
    )
    return {request_id: response_id for request_id, response_id in rows.all()}


def _gate_one(
    request: Request,
    identity: Identity,
    entitlements: Entitlements | None,
    has_responded: bool,
    now: datetime,
) -> dict[str, Any]:
    viewer = Viewer(id=identity.user_id, entitlements=entitlements, has_responded=has_responded)
    return apply_contact_gating(serialize_request(request, now), viewer)


async def _gate_page(
    session: AsyncSession,
    requests: list[Request],
    identity: Identity,
    entitlements: Entitlements | None,
    now: datetime,
) -> list[dict[str, Any]]:
    responded = await _responded_ids(session, identity.user_id, [r.id for r in requests])
    items = []
    for request in requests:
        record = _gate_one(request, identity, entitlements, request.id in responded, now)
        record["has_responded"] = request.id in responded
        items.append(record)
    return items


def _filter_conditions(filters: RequestFilters) -> list[Any]:
    conditions: list[Any] = []
    if filters.status:
        conditions.append(Request.status == filters.status)
    elif filters.has_accepted is not True:
        # Default: only active unless a status is given or accepted ones are asked for
        conditions.append(Request.status == RequestStatus.ACTIVE.value)

    if filters.category_id:
        conditions.append(Request.category_id == filters.category_id)
    if filters.subcategory_id:
        conditions.append(Request.subcategory_id == filters.subcategory_id)
    if filters.city_id:
        conditions.append(Request.city_id == filters.city_id)
    if filters.country_code:
        conditions.append(Request.country_code == filters.country_code.upper())
    if filters.owner_id:
        conditions.append(Request.owner_id == filters.owner_id)
    if filters.has_accepted is True:
        conditions.append(Request.accepted_response_id.is_not(None))
    elif filters.has_accepted is False:
        conditions.append(Request.accepted_response_id.is_(None))
    if filters.request_type:
        rt = normalize_request_type(filters.request_type)
        if rt is None:
            raise ValidationError(
                f"Unrecognized request type: {filters.request_type}",
                detail={"request_type": filters.request_type},
            )
        conditions.append(Request.request_type == rt.value)
    return conditions


def _ordering(sort_by: str, sort_order: str, now: datetime) -> list[Any]:
    column = SORT_COLUMNS.get(sort_by)
    if column is None:
        raise ValidationError(
            f"sort_by must be one of: {', '.join(SORT_COLUMNS)}",
            detail={"sort_by": sort_by},
        )
    direction = column.asc() if sort_order.lower() == "asc" else column.desc()
    return [urgent_rank(now), direction, Request.id]


async def _paged(
    identity: Identity,
    conditions: list[Any],
    page: int,
    limit: int,
    sort_by: str,
    sort_order: str,
    now: datetime | None,
) -> RequestPage:
    now = now or utcnow()
    page = max(page, 1)
    order = _ordering(sort_by, sort_order, now)
    entitlements = await _viewer_entitlements(identity)

    async with get_session() as session:
        total = (
            await session.execute(select(func.count()).select_from(Request).where(*conditions))
        ).scalar_one()
        rows = await session.execute(
            select(Request).where(*conditions).order_by(*order).offset((page - 1) * limit).limit(limit)
        )
        requests = list(rows.scalars().all())
        items = await _gate_page(session, requests, identity, entitlements, now)

    return RequestPage(items=items, total=total, page=page, limit=limit, viewer_entitlements=entitlements)


# ============================================================
# Read paths
# ============================================================


async def list_requests(
    identity: Identity,
    filters: RequestFilters,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    now: datetime | None = None,
) -> RequestPage:
    """Filtered listing, urgent-and-unexpired first."""
    return await _paged(identity, _filter_conditions(filters), page, limit, sort_by, sort_order, now)


async def search_requests(
    identity: Identity,
    q: str | None,
    filters: RequestFilters,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    now: datetime | None = None,
) -> RequestPage:
    """Case-insensitive title/description search.

    Raises:
        ValidationError: If the query is empty.
    """
    term = (q or "").strip()
    if not term:
        raise ValidationError("Search query is required")
    pattern = f"%{term}%"
    conditions = _filter_conditions(filters)
    conditions.append(or_(Request.title.ilike(pattern), Request.description.ilike(pattern)))
    return await _paged(identity, conditions, page, limit, sort_by, sort_order, now)


async def list_my_requests(
    identity: Identity,
    page: int = 1,
    limit: int = 20,
    now: datetime | None = None,
) -> RequestPage:
    """The caller's own requests, any status, newest first."""
    now = now or utcnow()
    page = max(page, 1)
    conditions = [Request.owner_id == identity.user_id]
    async with get_session() as session:
        total = (
            await session.execute(select(func.count()).select_from(Request).where(*conditions))
        ).scalar_one()
        rows = await session.execute(
            select(Request)
            .where(*conditions)
            .order_by(Request.created_at.desc(), Request.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = [_gate_one(r, identity, None, False, now) for r in rows.scalars().all()]
    return RequestPage(items=items, total=total, page=page, limit=limit)


async def get_request(identity: Identity, request_id: str, now: datetime | None = None) -> dict[str, Any]:
    """Detail view with contact gating and viewer context."""
    now = now or utcnow()
    entitlements = await _viewer_entitlements(identity)
    async with get_session() as session:
        request = await _get_or_404(session, request_id)
        responded = await _responded_ids(session, identity.user_id, [request.id])

    response_id = responded.get(request.id)
    record = _gate_one(request, identity, entitlements, response_id is not None, now)
    record["has_responded"] = response_id is not None
    record["viewer_context"] = {
        "is_owner": identity.is_authenticated and request.owner_id == identity.user_id,
        "has_responded": response_id is not None,
        "response_id": response_id,
        "entitlements": entitlements.to_dict() if entitlements else None,
    }
    return record


# ============================================================
# Write paths
# ============================================================


async def create_request(
    identity: Identity,
    attrs: dict[str, Any],
    dispatcher: NotificationDispatcher | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Create a request and dispatch it to matching businesses.

    Args:
        identity: Authenticated owner.
        attrs: Request attributes (title, description, city_id, category_id,
            request_type, metadata, ...).
        dispatcher: Notification dispatcher (shared instance by default).

    Returns:
        Owner view of the created request plus "matched_businesses" count.

    Raises:
        ValidationError: Missing required fields, or module disabled for the country.
    """
    settings = get_settings()
    now = now or utcnow()
    metadata = attrs.get("metadata") or {}
    request_type = resolve_request_type(attrs.get("request_type"), metadata)
    if request_type is None and attrs.get("request_type"):
        logger.info(f"Unrecognized request type {attrs.get('request_type')!r}, storing untyped")

    missing = [name for name in ("title", "description", "city_id") if not str(attrs.get(name) or "").strip()]
    if request_type != RequestType.RIDE and not attrs.get("category_id"):
        missing.append("category_id")
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", detail={"missing": missing})

    country_code = (attrs.get("country_code") or identity.effective_country).upper()
    if settings.enforce_country_modules:
        await ensure_type_enabled(country_code, request_type)

    request = Request(
        owner_id=identity.user_id,
        title=str(attrs["title"]).strip(),
        description=str(attrs["description"]).strip(),
        request_type=request_type.value if request_type else None,
        category_id=attrs.get("category_id"),
        subcategory_id=attrs.get("subcategory_id"),
        country_code=country_code,
        city_id=attrs["city_id"],
        location_address=attrs.get("location_address"),
        location_latitude=attrs.get("location_latitude"),
        location_longitude=attrs.get("location_longitude"),
        budget=attrs.get("budget"),
        currency=attrs.get("currency"),
        deadline=attrs.get("deadline"),
        image_urls=list(attrs.get("image_urls") or []),
        details=metadata or None,
        requester_phone=attrs.get("requester_phone"),
        requester_email=attrs.get("requester_email"),
        status=RequestStatus.ACTIVE.value,
        created_at=now,
        updated_at=now,
    )
    async with get_session() as session:
        session.add(request)

    logger.info(f"Request created id={request.id} type={request.request_type} country={country_code}")

    matches = await dispatch_new_request(request, dispatcher)

    record = _gate_one(request, identity, None, False, now)
    record["matched_businesses"] = len(matches)
    return record


async def update_request(identity: Identity, request_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Owner edit of request content.

    Raises:
        ValidationError: No fields, status given, or a required field blanked.
    """
    if "status" in fields:
        raise ValidationError("status changes only through accept, clear-accepted or complete")
    changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
    if not changes:
        raise ValidationError("No fields to update")
    for name in ("title", "description", "city_id"):
        if name in changes and not str(changes[name] or "").strip():
            raise ValidationError(f"{name} cannot be empty", detail={"field": name})

    async with get_session() as session:
        request = await _get_or_404(session, request_id, for_update=True)
        _require_owner(request, identity, "update it")
        if (
            "category_id" in changes
            and not changes["category_id"]
            and normalize_request_type(request.request_type) != RequestType.RIDE
        ):
            raise ValidationError("category_id cannot be empty", detail={"field": "category_id"})
        for name, value in changes.items():
            if name == "metadata":
                request.details = value
            else:
                setattr(request, name, value)
        request.updated_at = utcnow()

    return _gate_one(request, identity, None, False, utcnow())


async def delete_request(identity: Identity, request_id: str) -> None:
    """Delete a request with its responses and boost transactions."""
    async with get_session() as session:
        request = await _get_or_404(session, request_id, for_update=True)
        _require_owner(request, identity, "delete it")
        await session.execute(delete(Response).where(Response.request_id == request_id))
        await session.execute(
            delete(UrgentBoostTransaction).where(UrgentBoostTransaction.request_id == request_id)
        )
        await session.delete(request)
    logger.info(f"Request deleted id={request_id} by {identity.user_id}")


async def accept_response(
    identity: Identity,
    request_id: str,
    response_id: str,
    dispatcher: NotificationDispatcher | None = None,
) -> dict[str, Any]:
    """Point the request at a response; active -> closed.

    Raises:
        NotFoundError: Unknown request or response.
        PermissionDeniedError: Actor is not owner/privileged.
        InvalidStateError: Response belongs to another request.
        ConflictError: Another acceptance for this request is in flight.
    """
    try:
        async with optional_lock(f"request:{request_id}:accept"):
            async with get_session() as session:
                request = await _get_or_404(session, request_id, for_update=True)
                _require_owner(request, identity, "accept a response")
                response = await session.get(Response, response_id)
                if response is None:
                    raise NotFoundError("Response not found", detail={"response_id": response_id})
                if response.request_id != request.id:
                    raise InvalidStateError(
                        "Response does not belong to this request",
                        detail={"request_id": request_id, "response_id": response_id},
                    )
                previous = request.accepted_response_id
                await session.execute(
                    update(Request)
                    .where(Request.id == request_id)
                    .values(
                        accepted_response_id=response_id,
                        status=case(
                            (Request.status == RequestStatus.ACTIVE.value, RequestStatus.CLOSED.value),
                            else_=Request.status,
                        ),
                        updated_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.refresh(request)
                responder_id = response.responder_id
    except LockNotAcquired as e:
        raise ConflictError("Another acceptance is in progress for this request") from e

    if previous and previous != response_id:
        logger.info(f"Request {request_id} acceptance re-pointed {previous} -> {response_id}")
    else:
        logger.info(f"Request {request_id} accepted response {response_id}")

    await notify_user_safely(
        dispatcher or get_dispatcher(),
        recipient_id=responder_id,
        kind="responseAccepted",
        title="Your response was accepted",
        message="A requester accepted your response",
        sender_id=identity.user_id,
        data={"request_id": request_id, "response_id": response_id},
    )
    return _gate_one(request, identity, None, False, utcnow())


async def clear_accepted(identity: Identity, request_id: str) -> dict[str, Any]:
    """Clear the acceptance; closed -> active.

    Raises:
        InvalidStateError: Request is completed.
    """
    async with get_session() as session:
        request = await _get_or_404(session, request_id, for_update=True)
        _require_owner(request, identity, "clear the accepted response")
        if request.status == RequestStatus.COMPLETED.value:
            raise InvalidStateError("Completed requests keep their accepted response")
        await session.execute(
            update(Request)
            .where(Request.id == request_id)
            .values(
                accepted_response_id=None,
                status=case(
                    (Request.status == RequestStatus.CLOSED.value, RequestStatus.ACTIVE.value),
                    else_=Request.status,
                ),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await session.refresh(request)
    logger.info(f"Request {request_id} acceptance cleared")
    return _gate_one(request, identity, None, False, utcnow())


async def mark_completed(identity: Identity, request_id: str) -> dict[str, Any]:
    """Mark a request completed (idempotent).

    Raises:
        InvalidStateError: No accepted response.
    """
    async with get_session() as session:
        request = await _get_or_404(session, request_id, for_update=True)
        _require_owner(request, identity, "mark it completed")
        if not request.accepted_response_id:
            raise InvalidStateError("Cannot complete without an accepted response")
        if request.status != RequestStatus.COMPLETED.value:
            request.status = RequestStatus.COMPLETED.value
            request.updated_at = utcnow()
            logger.info(f"Request {request_id} completed")
    return _gate_one(request, identity, None, False, utcnow())


# ============================================================
# Urgent boost
# ============================================================


async def start_urgent_boost(identity: Identity, request_id: str) -> UrgentBoostQuote:
    """Record a pending boost payment at the country's fixed price."""
    async with get_session() as session:
        request = await _get_or_404(session, request_id)
        _require_owner(request, identity, "boost it")
        price = get_settings().urgent_boost_price(request.country_code)
        tx = UrgentBoostTransaction(
            request_id=request.id,
            user_id=request.owner_id,
            country_code=request.country_code,
            purpose=PURPOSE_URGENT_BOOST,
            amount=price.amount,
            currency=price.currency,
            status=TX_PENDING,
        )
        session.add(tx)
        await session.flush()
        quote = UrgentBoostQuote(
            transaction_id=tx.id,
            request_id=request.id,
            amount=tx.amount,
            currency=tx.currency,
            status=tx.status,
        )
    logger.info(f"Urgent boost started request={request_id} tx={quote.transaction_id}")
    return quote


async def confirm_urgent_boost(
    identity: Identity,
    request_id: str,
    transaction_id: str | None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """React to the payment-settled signal: mark paid, flag the request urgent.

    Raises:
        ValidationError: Missing transaction id.
        NotFoundError: Unknown request or transaction.
        InvalidStateError: Transaction is not an urgent boost for this request's owner.
    """
    if not transaction_id:
        raise ValidationError("transaction_id is required")
    now = now or utcnow()
    async with get_session() as session:
        request = await _get_or_404(session, request_id, for_update=True)
        _require_owner(request, identity, "boost it")
        tx = await session.get(UrgentBoostTransaction, transaction_id)
        if tx is None:
            raise NotFoundError("Transaction not found", detail={"transaction_id": transaction_id})
        if (
            tx.request_id != request.id
            or tx.user_id != request.owner_id
            or tx.purpose != PURPOSE_URGENT_BOOST
            or tx.status not in (TX_PENDING, TX_PAID)
        ):
            raise InvalidStateError(
                "Transaction does not pay for this request's urgent boost",
                detail={"transaction_id": transaction_id},
            )
        tx.status = TX_PAID
        request.is_urgent = True
        request.urgent_until = now + timedelta(days=get_settings().urgent_boost_days)
        request.urgent_payment_ref = tx.id
        request.updated_at = now
    logger.info(f"Urgent boost confirmed request={request_id} until={request.urgent_until}")
    return _gate_one(request, identity, None, False, now)


async def clear_urgent_boost(identity: Identity, request_id: str) -> dict[str, Any]:
    """Drop the urgent flag and its expiry."""
    async with get_session() as session:
        request = await _get_or_404(session, request_id, for_update=True)
        _require_owner(request, identity, "clear its urgent boost")
        request.is_urgent = False
        request.urgent_until = None
        request.updated_at = utcnow()
    return _gate_one(request, identity, None, False, utcnow())
