"""Error taxonomy and the HTTP exception handlers that render it.

Every failure that reaches a client is an `ApiError` subclass (or is turned
into one here) and is rendered as::

    {"error": {"kind": "<machine readable>", "message": "<human readable>"}}

Validation failures add a top-level ``errors`` list of ``{field, message}``
descriptors.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldError:
    """A single per-field validation problem."""

    field: str
    message: str


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""

    kind: str = "internal"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def body(self) -> dict[str, Any]:
        return {"error": {"kind": self.kind, "message": self.message}}

    def headers(self) -> dict[str, str] | None:
        return None


class ValidationFailed(ApiError):
    """Input was rejected before reaching the store."""

    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    def __init__(self, errors: Sequence[FieldError], message: str | None = None) -> None:
        self.errors = list(errors)
        super().__init__(message)

    @classmethod
    def single(cls, field: str, message: str) -> ValidationFailed:
        return cls([FieldError(field=field, message=message)])

    def body(self) -> dict[str, Any]:
        body = super().body()
        body["errors"] = [asdict(err) for err in self.errors]
        return body


class Unauthorized(ApiError):
    """No usable credential was presented."""

    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(ApiError):
    """A credential was presented but does not grant access."""

    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(ApiError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(ApiError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class StoreTimeout(ApiError):
    """The store did not answer within the configured duration."""

    kind = "timeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = "Store operation timed out"


class InternalError(ApiError):
    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


_KIND_BY_STATUS: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: ValidationFailed.kind,
    status.HTTP_401_UNAUTHORIZED: Unauthorized.kind,
    status.HTTP_403_FORBIDDEN: Forbidden.kind,
    status.HTTP_404_NOT_FOUND: NotFound.kind,
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_409_CONFLICT: Conflict.kind,
}


def _field_from_location(loc: Sequence[Any]) -> str:
    """Drop the request-part prefix ("body", "query", ...) from a pydantic location."""
    parts = [str(part) for part in loc]
    if len(parts) > 1 and parts[0] in {"body", "query", "path", "header", "cookie"}:
        parts = parts[1:]
    return ".".join(parts) if parts else "body"


def errors_from_pydantic(raw_errors: Sequence[Any]) -> list[FieldError]:
    """Convert pydantic/FastAPI error dictionaries to field errors."""
    return [
        FieldError(field=_field_from_location(err.get("loc", ())), message=str(err.get("msg", "")))
        for err in raw_errors
    ]


def register_exception_handlers(app: FastAPI, *, debug: bool = False) -> None:
    """Install handlers that render every failure in the shared error shape."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationFailed(errors_from_pydantic(exc.errors()))
        return JSONResponse(status_code=error.status_code, content=error.body())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        kind = _KIND_BY_STATUS.get(exc.status_code, "http_error")
        content = {"error": {"kind": kind, "message": str(exc.detail)}}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        body = InternalError().body()
        if debug:
            body["error"]["detail"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)
