"""HTTP transport with bearer authentication and status mapping."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import aiohttp

from pyfieldtrack._constants import USER_AGENT
from pyfieldtrack._redact import redact_for_log
from pyfieldtrack.config import FieldTrackConfig
from pyfieldtrack.exceptions import (
    FieldTrackApiError,
    FieldTrackNetworkError,
    FieldTrackNotFoundError,
    FieldTrackValidationError,
)

_logger = logging.getLogger(__name__)

_VALIDATION_STATUSES: frozenset[int] = frozenset({400, 422})


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Any: ...


def _error_message(body: Any, text: str) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return text[:200]


def raise_for_status(status: int, endpoint: str, body: Any, text: str = "") -> None:
    """Map a non-2xx HTTP status to the library's exception hierarchy."""
    if 200 <= status < 300:
        return
    message = f"HTTP {status} from {endpoint}: {_error_message(body, text)}"
    if status >= 500:
        raise FieldTrackNetworkError(message, status_code=status, endpoint=endpoint)
    if status == 404:
        raise FieldTrackNotFoundError(message, status_code=status, endpoint=endpoint)
    if status in _VALIDATION_STATUSES:
        raise FieldTrackValidationError(message, status_code=status, endpoint=endpoint)
    raise FieldTrackApiError(message, status_code=status, endpoint=endpoint)


class HttpTransport:
    """JSON-over-HTTP transport for the tracking API."""

    def __init__(
        self,
        config: FieldTrackConfig,
        http_session: aiohttp.ClientSession,
        *,
        token_getter: Callable[[], str | None] | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._token_getter = token_getter
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        token = self._token_getter() if self._token_getter is not None else self._config.access_token
        if token:
            headers["authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Raises
        ------
        FieldTrackNetworkError
            Connection failure, timeout, 5xx, or a body that is not JSON.
        FieldTrackApiError
            Any other non-2xx status (validation and not-found subclasses
            for 400/422 and 404).
        """
        url = f"{self._config.api_url}{endpoint}"
        headers = self._build_headers()
        data = json.dumps(dict(json_body), separators=(",", ":")) if json_body is not None else None

        if self._config.api_trace_enabled:
            _logger.debug(
                "%s %s params=%s body=%s",
                method,
                url,
                params,
                redact_for_log(dict(json_body) if json_body is not None else None),
            )
        else:
            _logger.debug("%s %s", method, url)

        try:
            async with self._http.request(
                method,
                url,
                data=data,
                params=dict(params) if params else None,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise FieldTrackNetworkError(
                f"Request to {endpoint} failed: {exc!r}",
                endpoint=endpoint,
            ) from exc

        body: Any = None
        if text.strip():
            try:
                body = json.loads(text)
            except json.JSONDecodeError as exc:
                if 200 <= status < 300:
                    raise FieldTrackNetworkError(
                        f"Invalid JSON from {endpoint}: {text[:200]}",
                        status_code=status,
                        endpoint=endpoint,
                    ) from exc

        if self._config.api_trace_enabled:
            _logger.debug("%s %s -> %s %s", method, url, status, redact_for_log(body))

        raise_for_status(status, endpoint, body, text)
        return body
