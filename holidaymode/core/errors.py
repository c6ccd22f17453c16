"""Error normalization and handlers."""

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from holidaymode.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.details = dict(details or {})


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class InvalidDateRangeError(ValidationError):
    """End before start, or a start date in the past."""
    code = "invalid_date_range"


class EmptySelectionError(ValidationError):
    """A habits/tasks scope that names no concrete target."""
    code = "empty_selection"


class ScopeConflictError(ValidationError):
    """More than one scope representation populated on a record or request."""
    code = "scope_conflict"


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class ActivePeriodExistsError(ConflictError):
    code = "active_period_exists"


class AllowanceExceededError(AppError):
    """Plan quota (count or duration) exhausted; caller should route to upgrade."""
    code = "allowance_exceeded"
    status_code = 403

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.details.setdefault("requires_premium", True)

    @property
    def requires_premium(self) -> bool:
        return bool(self.details.get("requires_premium"))


class AlreadyInactiveError(AppError):
    """Cancelling a period that is no longer active. Idempotent for callers."""
    code = "already_inactive"
    status_code = 409


class StoreError(AppError):
    """Opaque, retryable failure from the period store."""
    code = "store_unavailable"
    status_code = 503

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.details.setdefault("retryable", True)


class CreateFailedError(StoreError):
    code = "create_failed"


class CancelFailedError(StoreError):
    code = "cancel_failed"


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str, details: Optional[Dict[str, Any]] = None) -> dict:
    error = {"code": code, "message": message, "request_id": request_id}
    if details:
        error.update(details)
    return {
        "error": error,
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid, exc.details)
    logger = logging.getLogger("holidaymode")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    rid = _extract_request_id(request)
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    payload = _error_payload("validation_error", message, rid)
    logging.getLogger("holidaymode").warning(
        "request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 400}
    )
    response = JSONResponse(status_code=400, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = {401: "unauthorized", 404: "not_found", 405: "method_not_allowed"}.get(exc.status_code, "http_error")
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("holidaymode")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("holidaymode")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
