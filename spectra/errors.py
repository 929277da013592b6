from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class InventoryError(HTTPException):
    """Base class for errors raised by the fiber inventory services."""

    status_code = 400
    code = "inventory_error"

    def __init__(self, message: str, details: object = None):
        super().__init__(
            status_code=type(self).status_code,
            detail={"code": self.code, "message": message, "details": details},
        )
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class InvalidInputError(InventoryError):
    """Malformed or out-of-range input that passed schema parsing."""

    status_code = 400
    code = "validation_error"


class InvalidReferenceError(InventoryError):
    """A referenced node/cable/core/connection does not exist or does not match."""

    status_code = 404
    code = "reference_error"


class ConflictError(InventoryError):
    """A uniqueness rule rejected the request. Never auto-resolved."""

    status_code = 409
    code = "conflict"


class TransientFetchError(InventoryError):
    """A periodic fetch failed; the next scheduled attempt retries it."""

    status_code = 503
    code = "transient_fetch_error"


def _error_payload(code: str, message: str, details: object) -> dict:
    payload = {"success": False, "error": code, "message": message}
    if details is not None:
        payload["details"] = details
    return payload


def _sanitize_errors(errors) -> list[dict]:
    sanitized = []
    for error in errors:
        error_copy = dict(error)
        error_copy.pop("ctx", None)
        if "input" in error_copy and not isinstance(
            error_copy["input"], (str, int, float, bool, type(None))
        ):
            error_copy["input"] = str(error_copy["input"])
        sanitized.append(error_copy)
    return sanitized


def register_error_handlers(app) -> None:
    async def _handle_http_exception(request: Request, status_code: int, detail: object):
        code = f"http_{status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=status_code,
            content=_error_payload(code, message, details),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return await _handle_http_exception(request, exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if getattr(exc, "detail", None) is not None else "Request failed"
        return await _handle_http_exception(request, exc.status_code, detail)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error", "Validation error", _sanitize_errors(exc.errors())
            ),
        )

    @app.exception_handler(PydanticValidationError)
    async def pydantic_validation_handler(request: Request, exc: PydanticValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error", "Validation error", _sanitize_errors(exc.errors())
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
