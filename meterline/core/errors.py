"""Error normalization and handlers."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import uuid4

from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from meterline.core.logging import LOGGER_NAME, get_request_id

logger = logging.getLogger(LOGGER_NAME)


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class AuthError(AppError):
    code = "unauthorized"
    status_code = 401


class NotFoundError(AppError, LookupError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class UpstreamError(AppError):
    """A non-2xx answer from the registry; status and body are carried verbatim."""
    code = "upstream_error"
    status_code = 502


class InternalError(AppError):
    code = "internal_error"
    status_code = 500


@contextmanager
def upstream_context(message: str) -> Iterator[None]:
    """Re-label registry failures with the caller's operation, keeping status and body."""
    try:
        yield
    except UpstreamError as exc:
        raise UpstreamError(
            message,
            status_code=exc.status_code,
            details=exc.details if exc.details is not None else exc.message,
        ) from exc



def _request_id_for(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    *,
    details: Optional[str] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    """The one error envelope every failure path renders."""
    rid = request_id or _request_id_for(request)
    payload = {
        "error": {"code": code, "message": message, "request_id": rid},
        "detail": message,
    }
    if details is not None:
        payload["details"] = details
    return JSONResponse(status_code=status_code, content=payload, headers={"x-request-id": rid})


async def app_error_handler(request: Request, exc: AppError):
    response = error_response(
        request, exc.status_code, exc.code, exc.message, details=exc.details, request_id=exc.request_id
    )
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "app.error",
        extra={
            "request_id": response.headers["x-request-id"],
            "error_code": exc.code,
            "error_message": exc.message,
            "status": exc.status_code,
        },
    )
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    code = "not_found" if exc.status_code == 404 else "http_error"
    logger.warning("http.error", extra={"error_code": code, "status": exc.status_code})
    return error_response(request, exc.status_code, code, str(exc.detail or "HTTP error"))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    location = [str(part) for part in (errors[0].get("loc", ()) if errors else ()) if part != "body"]
    message = f"Invalid request: {'.'.join(location)}" if location else "Invalid request"
    logger.warning("request.invalid", extra={"error_code": "validation_error", "status": 400})
    return error_response(request, 400, "validation_error", message)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled.exception", exc_info=exc, extra={"error_code": "internal_error", "status": 500})
    return error_response(request, 500, "internal_error", "Internal server error")
