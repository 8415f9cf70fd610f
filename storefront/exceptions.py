"""
Name: Typed Storefront Exceptions

Responsibilities:
  - Standardize internal errors with a stable error_code
  - Generate error_id for correlation with logs
  - Keep the message human-readable (no secrets)

Collaborators:
  - infrastructure.http.client: raises NetworkError
  - identity.tokens / identity.access_control: raise and map AuthError
  - application.cart: maps NetworkError/DataError into CartError results

Notes:
  - Only the infrastructure layer raises these past a function boundary;
    AccessControl and CartStore catch them and return result objects
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True)
class ErrorResponse:
    """Minimal shape for reporting an error to a UI layer."""

    error_code: str
    message: str
    error_id: str

    def to_dict(self) -> dict:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "error_id": self.error_id,
        }


class StorefrontError(Exception):
    """R: Base class for all storefront client errors."""

    error_code: str = "STOREFRONT_ERROR"

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error_code=self.error_code, message=self.message, error_id=self.error_id
        )


class AuthError(StorefrontError):
    """Invalid credentials, expired/malformed token, insufficient role/permission."""

    error_code: str = "AUTH_ERROR"


class NetworkError(StorefrontError):
    """Timeout, connection failure or non-2xx response from a collaborator."""

    error_code: str = "NETWORK_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, error_id=error_id, original_error=original_error)
        self.status_code = status_code


class DataError(StorefrontError):
    """A referenced product is missing from the catalog snapshot."""

    error_code: str = "DATA_ERROR"
