"""
Name: Retry Helper with Exponential Backoff + Jitter

Responsibilities:
  - Classify errors as transient (retry) or permanent (fail fast)
  - Provide a tenacity decorator with exponential backoff + jitter
  - Log retry attempts with structured context

Collaborators:
  - tenacity: retry engine (works for sync and async callables)
  - config.get_settings: attempts and delays
  - infrastructure.http.client: wraps idempotent GET requests
  - logger: structured logging

Constraints:
  - Retry ONLY transient errors (408, 429, 5xx, timeouts, connection issues)
  - Never retry permanent errors (400, 401, 403, 404)
  - Only idempotent calls are decorated; cart writes are never retried
"""

from __future__ import annotations

from typing import Callable, TypeVar

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ...config import get_settings
from ...exceptions import NetworkError
from ...logger import logger

T = TypeVar("T")

# R: HTTP status codes that indicate transient failures (retryable)
TRANSIENT_HTTP_CODES: frozenset[int] = frozenset(
    {
        408,  # Request Timeout
        429,  # Too Many Requests
        500,  # Internal Server Error
        502,  # Bad Gateway
        503,  # Service Unavailable
        504,  # Gateway Timeout
    }
)

# R: HTTP status codes that indicate permanent failures (do not retry)
PERMANENT_HTTP_CODES: frozenset[int] = frozenset(
    {
        400,  # Bad Request
        401,  # Unauthorized
        403,  # Forbidden
        404,  # Not Found
    }
)


def get_http_status_code(exception: BaseException) -> int | None:
    """R: Extract an HTTP status code from NetworkError or httpx errors."""
    status_code = getattr(exception, "status_code", None)
    if isinstance(status_code, int):
        return status_code

    # R: httpx.HTTPStatusError exposes response.status_code
    resp = getattr(exception, "response", None)
    if resp is not None and isinstance(getattr(resp, "status_code", None), int):
        return resp.status_code

    return None


def is_transient_error(exception: BaseException) -> bool:
    """R: Decide whether an error is worth retrying.

    Rules (in order):
      1) HTTP status code present: permanent -> False, transient -> True
      2) Transport-level failures (no response at all) -> True
      3) Default: fail fast
    """
    status_code = get_http_status_code(exception)
    if status_code is not None:
        if status_code in PERMANENT_HTTP_CODES:
            return False
        return status_code in TRANSIENT_HTTP_CODES

    if isinstance(exception, NetworkError):
        return isinstance(exception.original_error, httpx.TransportError)

    return isinstance(exception, (httpx.TransportError, TimeoutError, ConnectionError))


def _log_retry(retry_state: RetryCallState) -> None:
    """R: Log each attempt before sleeping."""
    fn = getattr(retry_state, "fn", None)
    wait_time = (
        retry_state.next_action.sleep
        if getattr(retry_state, "next_action", None) is not None
        else 0
    )
    exc = retry_state.outcome.exception() if retry_state.outcome else None

    logger.warning(
        "Retrying remote call",
        extra={
            "function": getattr(fn, "__name__", "unknown"),
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(float(wait_time), 2),
            "error": str(exc) if exc else None,
            "error_type": type(exc).__name__ if exc else None,
        },
    )


def create_retry_decorator(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """R: Create a tenacity decorator with exponential backoff + jitter.

    Config:
      - stop: stop_after_attempt(max_attempts)
      - wait: wait_exponential_jitter(initial=base_delay, max=max_delay)
      - retry: only if is_transient_error(exception)
      - reraise: True (propagate the last exception, not RetryError)
    """
    if None in (max_attempts, base_delay, max_delay):
        settings = get_settings()
        max_attempts = settings.retry_max_attempts if max_attempts is None else max_attempts
        base_delay = settings.retry_base_delay_seconds if base_delay is None else base_delay
        max_delay = settings.retry_max_delay_seconds if max_delay is None else max_delay

    _max_attempts = int(max_attempts)
    _base_delay = float(base_delay)
    _max_delay = float(max_delay)

    if _max_attempts <= 0:
        raise ValueError("max_attempts must be > 0")
    if _base_delay < 0:
        raise ValueError("base_delay must be >= 0")
    if _max_delay <= 0:
        raise ValueError("max_delay must be > 0")

    return retry(
        stop=stop_after_attempt(_max_attempts),
        wait=wait_exponential_jitter(
            initial=_base_delay, max=_max_delay, jitter=_base_delay
        ),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry,
        reraise=True,
    )

