"""
Name: Auth API Adapter

Responsibilities:
  - POST /auth/login and /auth/signup, returning the issued token
  - Translate rejections (4xx / success=false) into AuthError

Collaborators:
  - infrastructure.http.client.ApiClient
  - domain.services.AuthService (implemented contract)
"""

from typing import Any, Mapping

from pydantic import ValidationError

from ...exceptions import AuthError, NetworkError
from .client import ApiClient
from .schemas import TokenResponse

_REJECTION_CODES = frozenset({400, 401, 403, 404, 409, 422})


class HttpAuthService:
    def __init__(self, client: ApiClient):
        self._client = client

    async def login(self, credentials: Mapping[str, Any]) -> str:
        return await self._issue("/auth/login", credentials, "Login failed")

    async def signup(self, user_data: Mapping[str, Any]) -> str:
        return await self._issue("/auth/signup", user_data, "Signup failed")

    async def _issue(self, path: str, body: Mapping[str, Any], default_error: str) -> str:
        try:
            payload = await self._client.post(path, json=dict(body))
        except NetworkError as exc:
            # R: a 200 with success=false carries the same status as a rejection
            if exc.status_code in _REJECTION_CODES or exc.status_code == 200:
                raise AuthError(exc.message or default_error, original_error=exc) from exc
            raise

        try:
            response = TokenResponse.model_validate(payload or {})
        except ValidationError as exc:
            raise AuthError(default_error, original_error=exc) from exc
        if not response.success or not response.token:
            raise AuthError(response.error or default_error)
        return response.token
