"""
Domain exceptions raised by services and dependencies.

Each class carries the HTTP status and the short `code` that the handler in
main.py puts into the error envelope:

    { "success": false, "error": { "code": <code>, "message": ..., "details": ... } }
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class; also used directly for one-off statuses (e.g. full-sentence 404s)."""
    code = "domain"
    default_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: int | None = None, details: dict | None = None):
        super().__init__(status_code=status_code or self.default_status, detail=message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainError):
    """"<Resource> not found" (404)."""
    code = "notfound"
    default_status = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: str | None = None, details: dict | None = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{message}: {identifier}"
        super().__init__(message, details=details)


class ValidationError(DomainError):
    """Bad input or a business rule the request breaks (400)."""
    code = "validation"


class UnauthorizedError(DomainError):
    """Missing, expired or invalid credentials (401)."""
    code = "unauthorized"
    default_status = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(DomainError):
    """Authenticated, but the role or ownership check failed (403)."""
    code = "permissiondenied"
    default_status = status.HTTP_403_FORBIDDEN


class ConflictError(DomainError):
    """Unique value already taken: coupon code, phone number (409)."""
    code = "conflict"
    default_status = status.HTTP_409_CONFLICT


class RateLimitError(DomainError):
    """Too many requests from one client on a guarded route (429)."""
    code = "ratelimit"
    default_status = status.HTTP_429_TOO_MANY_REQUESTS


class ExternalServiceError(DomainError):
    """Upstream provider (Twilio, Expo, Web Push) failed (502)."""
    code = "external_service"
    default_status = status.HTTP_502_BAD_GATEWAY
