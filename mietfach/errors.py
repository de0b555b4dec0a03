"""
Error taxonomy for availability calculations and its mapping to HTTP responses.
Routes stay thin: they catch AvailabilityError and raise the mapped HTTPException.
"""
from __future__ import annotations

from typing import Dict, Optional

from fastapi import HTTPException

STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_SERVICE_UNAVAILABLE = 503  # store down, batch cancelled
STATUS_INTERNAL_ERROR = 500


class AvailabilityError(Exception):
    kind = "error"

    def __init__(self, message: str, unit_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.unit_id = unit_id


class InvalidRequestError(AvailabilityError):
    """Malformed input, e.g. start >= end or an empty unit list."""

    kind = "validation"


class NotFoundError(AvailabilityError):
    kind = "not_found"


class ServiceError(AvailabilityError):
    """The contract store failed (network, credentials, unreadable workbook)."""

    kind = "service_error"


class BatchCancelledError(AvailabilityError):
    kind = "cancelled"

    def __init__(self, message: str, partial: Optional[Dict] = None):
        super().__init__(message)
        self.partial = partial or {}


# kind -> HTTP status. Add new error kinds here instead of in routes.
STATUS_BY_KIND: Dict[str, int] = {
    InvalidRequestError.kind: STATUS_BAD_REQUEST,
    NotFoundError.kind: STATUS_NOT_FOUND,
    ServiceError.kind: STATUS_SERVICE_UNAVAILABLE,
    BatchCancelledError.kind: STATUS_SERVICE_UNAVAILABLE,
}


def availability_error_to_http(exc: AvailabilityError) -> HTTPException:
    status_code = STATUS_BY_KIND.get(exc.kind, STATUS_INTERNAL_ERROR)
    detail = {"kind": exc.kind, "message": exc.message}
    if exc.unit_id is not None:
        detail["unit_id"] = exc.unit_id
    return HTTPException(status_code=status_code, detail=detail)
