"""
Name: Problem Details Responses (RFC 7807)

Responsibilities:
  - Define the catalog of error codes returned by the web shell
  - Build application/problem+json payloads
  - Provide FastAPI handlers for AppHTTPException and unexpected errors

Collaborators:
  - web.routes: raises AppHTTPException via the factories below
  - web.main: registers the handlers
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..logger import logger


class ErrorCode(str, Enum):
    # 4xx
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    EMPTY_CART = "EMPTY_CART"

    # 5xx
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"


class ErrorDetail(BaseModel):
    """
    RFC 7807 (Problem Details) with a stable `code` for clients.
    """

    type: str = "about:blank"
    title: str
    status: int
    detail: str
    code: ErrorCode
    instance: str | None = None
    errors: list[dict[str, Any]] | None = None


PROBLEM_JSON_MEDIA_TYPE = "application/problem+json"


class AppHTTPException(HTTPException):
    """HTTPException carrying a stable ErrorCode."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.code = code
        self.errors = errors


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def unauthorized(detail: str = "Authentication required") -> AppHTTPException:
    return AppHTTPException(401, ErrorCode.UNAUTHORIZED, detail)


def forbidden(detail: str = "Access denied") -> AppHTTPException:
    return AppHTTPException(403, ErrorCode.FORBIDDEN, detail)


def not_found(resource: str, identifier: str) -> AppHTTPException:
    return AppHTTPException(404, ErrorCode.NOT_FOUND, f"{resource} '{identifier}' not found")


def empty_cart(detail: str) -> AppHTTPException:
    return AppHTTPException(409, ErrorCode.EMPTY_CART, detail)


def upstream_error(detail: str) -> AppHTTPException:
    return AppHTTPException(502, ErrorCode.UPSTREAM_ERROR, detail)


def internal_error(detail: str) -> AppHTTPException:
    return AppHTTPException(500, ErrorCode.INTERNAL_ERROR, detail)


def problem_response(
    request: Request,
    status_code: int,
    code: ErrorCode,
    detail: str,
    errors: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    error = ErrorDetail(
        type=f"about:blank/{code.value.lower()}",
        title=code.value.replace("_", " ").title(),
        status=status_code,
        detail=detail,
        code=code,
        instance=str(request.url),
        errors=errors,
    )
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(exclude_none=True),
        headers=headers,
        media_type=PROBLEM_JSON_MEDIA_TYPE,
    )


# ---------------------------------------------------------------------------
# FastAPI handlers
# ---------------------------------------------------------------------------
async def app_exception_handler(request: Request, exc: AppHTTPException) -> JSONResponse:
    return problem_response(
        request,
        exc.status_code,
        exc.code,
        str(exc.detail),
        errors=exc.errors,
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for unhandled errors (no internals leak to the client)."""
    logger.error("Unhandled error", extra={"path": request.url.path}, exc_info=exc)
    return problem_response(
        request, 500, ErrorCode.INTERNAL_ERROR, "An unexpected error occurred"
    )
