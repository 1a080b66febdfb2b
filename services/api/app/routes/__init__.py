"""API routes."""

from fastapi import APIRouter

from app.routes import admin, entitlements, modules, requests, responses
from app.schemas import ErrorResponse

# Documented error envelope for every marketplace endpoint
ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 401, 402, 403, 404, 409, 503)
}

api_router = APIRouter(responses=ERROR_RESPONSES)

# Requests and their lifecycle
api_router.include_router(requests.router, prefix="/v1/requests", tags=["requests"])

# Responses (nested under a request)
api_router.include_router(
    responses.router,
    prefix="/v1/requests/{request_id}/responses",
    tags=["responses"],
)

# Entitlements (quota)
api_router.include_router(entitlements.router, prefix="/v1/entitlements", tags=["entitlements"])

# Country module configuration
api_router.include_router(modules.router, prefix="/v1/modules", tags=["modules"])

# Admin endpoints (privileged roles)
api_router.include_router(admin.router, prefix="/v1/admin", tags=["admin"])
