"""Response service.

Rules:
- one response per (request, responder), enforced by the store; a losing
  concurrent insert surfaces as ConflictError
- the owner cannot respond to their own request
- only active requests accept responses
- the accepted response cannot be edited, nor deleted until the owner
  clears the acceptance
- non-owners only ever see their own response
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.models import Request, Response
from app.models.request import utcnow
from app.services.entitlements import Entitlements, get_entitlements, increment_usage
from app.services.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    QuotaExceededError,
    ValidationError,
)
from app.services.identity import Identity
from app.services.matching import can_business_respond_to_request
from app.services.notifications import NotificationDispatcher, get_dispatcher, notify_user_safely
from app.services.request_types import RequestStatus, normalize_request_type
from app.services.requests import as_utc
from app.settings import get_settings
from app.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")

MAX_PAGE_SIZE = 100
ALREADY_RESPONDED = "you have already responded to this request"
OWN_REQUEST = "cannot respond to your own request"

UPDATABLE_FIELDS = frozenset({"message", "price", "currency", "image_urls", "location_address"})


@dataclass
class ResponsePage:
    items: list[dict[str, Any]]
    total: int
    page: int
    limit: int


def serialize_response(response: Response, accepted_response_id: str | None = None) -> dict[str, Any]:
    return {
        "id": response.id,
        "request_id": response.request_id,
        "responder_id": response.responder_id,
        "message": response.message,
        "price": response.price,
        "currency": response.currency,
        "status": response.status,
        "image_urls": list(response.image_urls or []),
        "location_address": response.location_address,
        "country_code": response.country_code,
        "is_accepted": accepted_response_id is not None and accepted_response_id == response.id,
        "created_at": as_utc(response.created_at),
        "updated_at": as_utc(response.updated_at),
    }


def _check_can_respond(request: Request, identity: Identity) -> None:
    if request.owner_id == identity.user_id:
        raise PermissionDeniedError(OWN_REQUEST)
    if request.status != RequestStatus.ACTIVE.value:
        raise InvalidStateError(
            "Request is not accepting responses",
            detail={"status": request.status},
        )


async def create_response(
    identity: Identity,
    request_id: str,
    attrs: dict[str, Any],
    dispatcher: NotificationDispatcher | None = None,
    now: datetime | None = None,
) -> tuple[dict[str, Any], Entitlements]:
    """Submit a response to an active request.

    Args:
        identity: Authenticated responder.
        request_id: Target request.
        attrs: message, price, currency, image_urls, location_address, country_code.
        dispatcher: Notification dispatcher (shared instance by default).
        now: Evaluation time for the usage period.

    Returns:
        (serialized response, responder entitlements after this response)

    Raises:
        ValidationError: Empty message.
        NotFoundError: Unknown request.
        PermissionDeniedError: Own request, or business capability denies the type.
        QuotaExceededError: Free quota exhausted while enforcement is on.
        InvalidStateError: Request is not active.
        ConflictError: Already responded.
    """
    settings = get_settings()
    now = now or utcnow()
    message = str(attrs.get("message") or "").strip()
    if not message:
        raise ValidationError("Message is required")

    async with get_session() as session:
        request = await session.get(Request, request_id)
        if request is None:
            raise NotFoundError("Request not found", detail={"request_id": request_id})
        _check_can_respond(request, identity)
        existing = await session.execute(
            select(Response.id).where(
                Response.request_id == request_id,
                Response.responder_id == identity.user_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(ALREADY_RESPONDED)

    entitlements = await get_entitlements(identity.user_id, identity.role, now)
    if settings.enforce_response_quota and not entitlements.is_subscribed and not entitlements.can_respond:
        raise QuotaExceededError(
            "Monthly response limit reached",
            detail={"entitlements": entitlements.to_dict()},
        )

    request_type = normalize_request_type(request.request_type)
    if request_type is not None and request_type.value in settings.capability_gated_response_types:
        decision = await can_business_respond_to_request(
            identity.user_id, request_type, request.category_id
        )
        if not decision.can_respond:
            raise PermissionDeniedError(
                f"Not allowed to respond to {request_type.value} requests",
                detail={"reason": decision.reason},
            )

    response = Response(
        request_id=request_id,
        responder_id=identity.user_id,
        message=message,
        price=attrs.get("price"),
        currency=attrs.get("currency") or request.currency,
        image_urls=list(attrs.get("image_urls") or []),
        location_address=attrs.get("location_address"),
        country_code=(attrs.get("country_code") or request.country_code),
        created_at=now,
        updated_at=now,
    )
    try:
        async with get_session() as session:
            # Status may have changed while entitlements and capabilities were read
            current = (
                await session.execute(select(Request).where(Request.id == request_id).with_for_update())
            ).scalar_one_or_none()
            if current is None:
                raise NotFoundError("Request not found", detail={"request_id": request_id})
            _check_can_respond(current, identity)
            session.add(response)
    except IntegrityError as e:
        raise ConflictError(ALREADY_RESPONDED) from e

    logger.info(f"Response {response.id} created on request {request_id} by {identity.user_id}")

    await notify_user_safely(
        dispatcher or get_dispatcher(),
        recipient_id=request.owner_id,
        kind="newResponse",
        title="New response",
        message=f"New response to your request: {request.title}",
        sender_id=identity.user_id,
        data={"request_id": request_id, "response_id": response.id},
    )

    if not entitlements.is_subscribed:
        try:
            await increment_usage(identity.user_id, now)
        except (SQLAlchemyError, OSError, RuntimeError) as e:
            logger.warning(f"Usage increment failed for user={identity.user_id}: {e}")

    entitlements = await get_entitlements(identity.user_id, identity.role, now)
    return serialize_response(response, request.accepted_response_id), entitlements


async def list_responses(
    identity: Identity,
    request_id: str,
    page: int = 1,
    limit: int = 20,
) -> ResponsePage:
    """Owner sees every response (newest first); others only their own."""
    page = max(page, 1)
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    async with get_session() as session:
        request = await session.get(Request, request_id)
        if request is None:
            raise NotFoundError("Request not found", detail={"request_id": request_id})
        if not identity.is_authenticated:
            return ResponsePage(items=[], total=0, page=page, limit=limit)

        conditions = [Response.request_id == request_id]
        if request.owner_id != identity.user_id:
            conditions.append(Response.responder_id == identity.user_id)

        total = (
            await session.execute(select(func.count()).select_from(Response).where(*conditions))
        ).scalar_one()
        rows = await session.execute(
            select(Response)
            .where(*conditions)
            .order_by(Response.created_at.desc(), Response.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = [serialize_response(r, request.accepted_response_id) for r in rows.scalars().all()]

    return ResponsePage(items=items, total=total, page=page, limit=limit)


async def _load_pair(session, request_id: str, response_id: str) -> tuple[Request, Response]:
    response = await session.get(Response, response_id)
    if response is None or response.request_id != request_id:
        raise NotFoundError("Response not found", detail={"response_id": response_id})
    request = await session.get(Request, request_id)
    if request is None:
        raise NotFoundError("Request not found", detail={"request_id": request_id})
    return request, response


async def update_response(
    identity: Identity,
    request_id: str,
    response_id: str,
    fields: dict[str, Any],
) -> dict[str, Any]:
    """Responder edit of their response.

    Raises:
        PermissionDeniedError: Actor is not the responder.
        InvalidStateError: Response is the request's accepted response.
    """
    changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
    if not changes:
        raise ValidationError("No fields to update")
    if "message" in changes:
        changes["message"] = str(changes["message"] or "").strip()
        if not changes["message"]:
            raise ValidationError("Message cannot be empty")

    async with get_session() as session:
        request, response = await _load_pair(session, request_id, response_id)
        if response.responder_id != identity.user_id:
            raise PermissionDeniedError("Only the responder can edit this response")
        if request.accepted_response_id == response.id:
            raise InvalidStateError("Accepted responses cannot be edited")
        for name, value in changes.items():
            setattr(response, name, value)
        response.updated_at = utcnow()

    return serialize_response(response, request.accepted_response_id)


async def delete_response(identity: Identity, request_id: str, response_id: str) -> None:
    """Delete a response (responder or request owner).

    Raises:
        PermissionDeniedError: Actor is neither responder nor owner.
        InvalidStateError: Response is accepted; the owner must clear it first.
    """
    async with get_session() as session:
        request, response = await _load_pair(session, request_id, response_id)
        if identity.user_id not in (response.responder_id, request.owner_id):
            raise PermissionDeniedError("Only the responder or the request owner can delete this response")
        if request.accepted_response_id == response.id:
            raise InvalidStateError("Clear the accepted response before deleting it")
        await session.delete(response)
    logger.info(f"Response {response_id} deleted by {identity.user_id}")
