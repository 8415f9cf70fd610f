"""
Name: REST API Client (httpx)

Responsibilities:
  - Single async HTTP entry point for every remote collaborator
  - Attach the stored bearer credential to each request
  - Unwrap {success, data} envelopes
  - Map timeouts, connection failures and non-2xx responses to NetworkError
  - Retry idempotent GETs on transient failures

Collaborators:
  - httpx.AsyncClient: transport
  - domain.repositories.KeyValueStore: reads auth-token per request
  - infrastructure.services.retry: tenacity policy
  - exceptions.NetworkError

Constraints:
  - Writes (POST/PATCH/DELETE) are sent exactly once
  - The token is read at call time so login/logout apply immediately
"""

from __future__ import annotations

from typing import Any

import httpx

from ...domain.repositories import AUTH_TOKEN_KEY, KeyValueStore
from ...exceptions import NetworkError
from ...logger import logger
from ..services.retry import create_retry_decorator


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"


def unwrap_envelope(payload: Any) -> Any:
    """R: Return payload["data"] for {success, data} envelopes, else payload."""
    if isinstance(payload, dict) and "data" in payload and (
        "success" in payload or len(payload) == 1
    ):
        return payload["data"]
    return payload


class ApiClient:
    """R: Thin async wrapper over httpx bound to the storefront API."""

    def __init__(
        self,
        base_url: str,
        *,
        storage: KeyValueStore,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_max_attempts: int = 3,
        retry_base_delay: float = 0.2,
        retry_max_delay: float = 5.0,
    ):
        self._storage = storage
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        retrying = create_retry_decorator(
            max_attempts=retry_max_attempts,
            base_delay=retry_base_delay,
            max_delay=retry_max_delay,
        )
        self._get_with_retry = retrying(self._send)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        token = self._storage.get(AUTH_TOKEN_KEY)
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=self._auth_headers()
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{method} {path} timed out", original_error=exc) from exc
        except httpx.TransportError as exc:
            raise NetworkError(
                f"{method} {path} connection failed", original_error=exc
            ) from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(
                "API error",
                extra={
                    "method": method,
                    "path": path,
                    "status": response.status_code,
                    "error": message,
                },
            )
            raise NetworkError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as exc:
            raise NetworkError(
                f"{method} {path} returned invalid JSON",
                status_code=response.status_code,
                original_error=exc,
            ) from exc

        if isinstance(payload, dict) and payload.get("success") is False:
            raise NetworkError(
                str(payload.get("error") or "Request failed"),
                status_code=response.status_code,
            )
        return unwrap_envelope(payload)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._get_with_retry("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self._send("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self._send("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self._send("DELETE", path)
