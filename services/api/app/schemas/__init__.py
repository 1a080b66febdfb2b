"""Pydantic schemas for API request/response validation."""

from app.schemas.common import DeletedResponse, ErrorDetail, ErrorResponse, Pagination
from app.schemas.entitlements import EntitlementsOut
from app.schemas.modules import (
    CanRespondOut,
    MatchedBusinessOut,
    MatchPreviewResponse,
    ModuleConfigOut,
    ModuleConfigUpdate,
)
from app.schemas.requests import (
    AcceptResponseBody,
    RequestCreate,
    RequestListResponse,
    RequestOut,
    RequestUpdate,
    UrgentBoostConfirm,
    UrgentBoostQuoteOut,
    ViewerContext,
)
from app.schemas.responses import (
    ResponseCreate,
    ResponseCreated,
    ResponseListResponse,
    ResponseOut,
    ResponseUpdate,
)

__all__ = [
    "DeletedResponse",
    "ErrorDetail",
    "ErrorResponse",
    "Pagination",
    "EntitlementsOut",
    "CanRespondOut",
    "MatchedBusinessOut",
    "MatchPreviewResponse",
    "ModuleConfigOut",
    "ModuleConfigUpdate",
    "AcceptResponseBody",
    "RequestCreate",
    "RequestListResponse",
    "RequestOut",
    "RequestUpdate",
    "UrgentBoostConfirm",
    "UrgentBoostQuoteOut",
    "ViewerContext",
    "ResponseCreate",
    "ResponseCreated",
    "ResponseListResponse",
    "ResponseOut",
    "ResponseUpdate",
]
