"""Error taxonomy and normalized HTTP handlers."""

import logging
import builtins
from typing import Optional
from uuid import uuid4

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from stayhard.core.logging import get_request_id

logger = logging.getLogger("stayhard")


class AppError(Exception):
    """Base for errors the API maps to a status code and a stable error code."""
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    """Malformed or out-of-range input (bad date, unsupported duration, ...)."""
    code = "validation_error"
    status_code = 400


class InvalidLevelError(ValidationError):
    code = "invalid_level"


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class InvalidStateError(AppError):
    """Operation not allowed for the challenge's current status or level."""
    code = "invalid_state"
    status_code = 409


class ImmutableTaskSetError(InvalidStateError):
    """Raised when editing the task list of a non-Custom challenge."""
    code = "immutable_task_set"


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class PayloadTooLargeError(AppError):
    code = "payload_too_large"
    status_code = 413


HTTP_ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
}


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message, request_id: str) -> dict:
    return {
        "error": {"code": code, "message": message, "request_id": request_id},
        "detail": message,
    }


def _respond(status_code: int, code: str, message, rid: str, headers: Optional[dict] = None) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=_error_payload(code, message, rid), headers=headers)
    response.headers["x-request-id"] = rid
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    return _respond(exc.status_code, exc.code, exc.message, rid)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    rid = _extract_request_id(request)
    code = HTTP_ERROR_CODES.get(exc.status_code, "http_error")
    message = exc.detail or "HTTP error"
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return _respond(exc.status_code, code, message, rid, headers=getattr(exc, "headers", None))


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Collapse pydantic's error list into one readable message for the first problem."""
    rid = _extract_request_id(request)
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    reason = first.get("msg", "invalid input")
    message = f"{location}: {reason}" if location else reason
    logger.warning("request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 422})
    return _respond(422, "validation_error", message, rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    return _respond(500, "internal_error", "Unexpected error", rid)
