"""Failure taxonomy for remote calls.

Every request to Notion goes through :func:`call_api`, which applies the
rate limiter and converts SDK and transport exceptions into the classes
below.  The sync queue decides whether to retry, go offline or give up based
on the class alone.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from notion_client.errors import APIResponseError, HTTPResponseError, RequestTimeoutError

if TYPE_CHECKING:
    from notion_vault_sync.remote.throttle import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncError(Exception):
    """Base class for every failure the sync engine knows how to handle."""


class NetworkError(SyncError):
    """The service could not be reached (connection failure or timeout)."""


class APIError(SyncError):
    """The service answered with an error status."""

    def __init__(self, status: int, code: str, message: str, operation: str = "") -> None:
        self.status = status
        self.code = code
        self.message = message
        self.operation = operation
        prefix = f"Notion API error during '{operation}': " if operation else ""
        super().__init__(f"{prefix}status={status}, code={code}, msg={message}")

    @property
    def not_found(self) -> bool:
        return self.status == 404 or self.code == "object_not_found"

    @property
    def rate_limited(self) -> bool:
        return self.status == 429


class ValidationError(SyncError):
    """Input that can never succeed: a malformed title, path or setting."""


def call_api(
    limiter: RateLimiter | None,
    fn: Callable[..., T],
    operation: str,
    **kwargs: Any,
) -> T:
    """Invoke an SDK method under the rate limiter, translating failures."""
    if limiter is not None:
        limiter.acquire()
    logger.debug("Notion request: %s", operation)
    try:
        return fn(**kwargs)
    except RequestTimeoutError as exc:
        raise NetworkError(f"Timed out during '{operation}': {exc}") from exc
    except HTTPResponseError as exc:
        raise _api_error(exc, operation) from exc
    except httpx.TransportError as exc:
        raise NetworkError(f"Network failure during '{operation}': {exc}") from exc
    except OSError as exc:
        raise NetworkError(f"Network failure during '{operation}': {exc}") from exc


def _api_error(exc: HTTPResponseError, operation: str) -> APIError:
    code_text = ""
    if isinstance(exc, APIResponseError):
        code_text = getattr(exc.code, "value", exc.code) or ""
    message = str(exc)
    body = getattr(exc, "body", "") or ""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message") or message
        code_text = code_text or payload.get("code") or ""
    return APIError(exc.status, str(code_text), message, operation)
