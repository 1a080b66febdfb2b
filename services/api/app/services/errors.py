"""Marketplace error taxonomy.

Services raise these; the API layer maps them onto the structured error
envelope { "error": { "code", "message", "detail" } }.
"""

from typing import Any


class MarketplaceError(Exception):
    """Base class for user-visible marketplace errors."""

    code = "MARKETPLACE_ERROR"
    status_code = 400

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class NotFoundError(MarketplaceError):
    code = "NOT_FOUND"
    status_code = 404


class PermissionDeniedError(MarketplaceError):
    code = "PERMISSION_DENIED"
    status_code = 403


class QuotaExceededError(PermissionDeniedError):
    """Monthly free response quota exhausted (only when enforcement is on)."""

    code = "LIMIT_REACHED"
    status_code = 402


class InvalidStateError(MarketplaceError):
    code = "INVALID_STATE"
    status_code = 409


class ConflictError(MarketplaceError):
    code = "CONFLICT"
    status_code = 409


class ValidationError(MarketplaceError):
    code = "VALIDATION_ERROR"
    status_code = 400


class DependencyUnavailableError(MarketplaceError):
    code = "DEPENDENCY_UNAVAILABLE"
    status_code = 503


class UnauthenticatedError(MarketplaceError):
    code = "UNAUTHENTICATED"
    status_code = 401
