"""Shared helpers for tracking API endpoint modules.

Every endpoint answers with the envelope ``{"data": ..., "message": ...,
"status": ...}``. This module unwraps it and parses the payload.

It is internal to pyfieldtrack and may change at any time.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar
from urllib.parse import quote

from pydantic import BaseModel, ValidationError

from pyfieldtrack._transport import Transport
from pyfieldtrack.exceptions import FieldTrackApiError

_logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=BaseModel)


def path_segment(value: str) -> str:
    """Quote a value for use as a single URL path segment."""
    return quote(str(value), safe="")


def unwrap_envelope(endpoint: str, body: Any) -> tuple[Any, str]:
    """Return ``(data, message)`` from a response envelope.

    Bodies without an envelope are returned unchanged as data.
    """
    if isinstance(body, dict) and "data" in body:
        status = body.get("status")
        if isinstance(status, str) and status.lower() in {"error", "fail", "failed"}:
            raise FieldTrackApiError(
                f"{endpoint} failed: {body.get('message', '')}",
                endpoint=endpoint,
            )
        message = body.get("message")
        return body["data"], message if isinstance(message, str) else ""
    return body, ""


async def request_data(
    transport: Transport,
    method: str,
    endpoint: str,
    *,
    json_body: Mapping[str, Any] | None = None,
    params: Mapping[str, str] | None = None,
) -> tuple[Any, str]:
    """Send a request and return the unwrapped ``(data, message)``."""
    body = await transport.request(method, endpoint, json_body=json_body, params=params)
    return unwrap_envelope(endpoint, body)


def parse_model(endpoint: str, model: type[TModel], data: Any) -> TModel:
    """Validate *data* into *model*, mapping failures to :class:`FieldTrackApiError`."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise FieldTrackApiError(
            f"{endpoint} returned an unexpected {model.__name__} payload: {exc.error_count()} error(s)",
            endpoint=endpoint,
        ) from exc


def parse_model_list(endpoint: str, model: type[TModel], data: Any) -> list[TModel]:
    """Validate a list payload item by item, skipping malformed rows."""
    items = data if isinstance(data, list) else []
    parsed: list[TModel] = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError:
            _logger.debug("Skipping malformed %s row from %s", model.__name__, endpoint, exc_info=True)
    return parsed
