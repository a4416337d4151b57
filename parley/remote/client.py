"""
Shared HTTP plumbing for the speech, language, translation and TTS services.

All endpoints live under one base URL. Failures are normalized into
ServiceError so callers only deal with FailureCategory values:

    error body {"error": "No speech detected", "details": "..."}
        -> ServiceError(NO_SPEECH_DETECTED, "...")
    httpx.TimeoutException   -> REQUEST_TIMEOUT
    other httpx.TransportError -> NETWORK_ERROR
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator, Optional

import httpx

from parley.app.logging_setup import log_event
from parley.errors import FailureCategory, ServiceError

# Error strings reported by the speech service, lower-cased.
_ERROR_CATEGORIES: dict[str, FailureCategory] = {
    "low quality speech detected": FailureCategory.LOW_QUALITY_SPEECH,
    "no speech detected": FailureCategory.NO_SPEECH_DETECTED,
    "speech too short": FailureCategory.SPEECH_TOO_SHORT,
    "transcription too short": FailureCategory.TRANSCRIPTION_TOO_SHORT,
    "network connection failed": FailureCategory.NETWORK_ERROR,
    "api access blocked": FailureCategory.ACCESS_BLOCKED,
    "request timeout": FailureCategory.REQUEST_TIMEOUT,
    "invalid audio file": FailureCategory.INVALID_AUDIO,
}


def category_for_error(error: Optional[str]) -> FailureCategory:
    key = str(error or "").strip().lower()
    return _ERROR_CATEGORIES.get(key, FailureCategory.UNKNOWN)


def error_from_response(response: httpx.Response) -> ServiceError:
    error: Optional[str] = None
    details: Optional[str] = None
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        details = payload.get("details")

    category = category_for_error(error)
    if category == FailureCategory.UNKNOWN and response.status_code in (403, 429):
        category = FailureCategory.ACCESS_BLOCKED
    if category == FailureCategory.UNKNOWN and response.status_code in (408, 504):
        category = FailureCategory.REQUEST_TIMEOUT
    detail = details or error or f"HTTP {response.status_code}"
    return ServiceError(category, str(detail))


class ServiceClient:
    """Thin async wrapper around one httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.logger = logger
        if client is None:
            timeout = httpx.Timeout(timeout_seconds, read=timeout_seconds)
            limits = httpx.Limits(max_connections=10, max_keepalive_connections=5)
            client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, limits=limits)
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = await self._client.post(path, **kwargs)
        except httpx.TimeoutException as e:
            log_event(self.logger, logging.WARNING, "service_timeout", path=path)
            raise ServiceError(FailureCategory.REQUEST_TIMEOUT, str(e) or "Request timeout") from e
        except httpx.TransportError as e:
            log_event(self.logger, logging.WARNING, "service_transport_error", path=path, error=str(e))
            raise ServiceError(FailureCategory.NETWORK_ERROR, str(e) or "Network connection failed") from e

        log_event(
            self.logger,
            logging.INFO,
            "service_response",
            path=path,
            status=response.status_code,
            ms=round((time.perf_counter() - start) * 1000.0, 2),
        )
        if response.is_error:
            raise error_from_response(response)
        return response

    async def post_json(self, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self.post(path, **kwargs)
        try:
            payload = response.json()
        except ValueError as e:
            raise ServiceError(FailureCategory.UNKNOWN, f"Invalid JSON from {path}") from e
        if not isinstance(payload, dict):
            raise ServiceError(FailureCategory.UNKNOWN, f"Unexpected response from {path}")
        return payload

    async def stream_text(self, path: str, **kwargs: Any) -> AsyncIterator[str]:
        try:
            async with self._client.stream("POST", path, **kwargs) as response:
                if response.is_error:
                    await response.aread()
                    raise error_from_response(response)
                async for piece in response.aiter_text():
                    if piece:
                        yield piece
        except httpx.TimeoutException as e:
            raise ServiceError(FailureCategory.REQUEST_TIMEOUT, str(e) or "Request timeout") from e
        except httpx.TransportError as e:
            raise ServiceError(FailureCategory.NETWORK_ERROR, str(e) or "Network connection failed") from e
