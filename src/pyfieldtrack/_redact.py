"""Redaction of request and response bodies for trace logging.

Trace bodies are decoded JSON. Bearer tokens and credentials are masked,
operator positions are coarsened to roughly a kilometre, and location
histories are cut down to their first samples.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "accesstoken",
        "access_token",
        "refreshtoken",
        "refresh_token",
        "authorization",
    }
)
_COORDINATE_KEYS: frozenset[str] = frozenset({"latitude", "longitude", "lat", "lng"})
_COORDINATE_DECIMALS = 2


def _coarsen(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    return round(float(value), _COORDINATE_DECIMALS)


def redact_for_log(value: Any, *, max_items: int = 20, max_string: int = 512) -> Any:
    """Return a copy of a JSON body that is safe to write to DEBUG logs.

    Lists longer than ``max_items`` keep their first entries plus a
    ``"<+N more>"`` marker.
    """
    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            lowered = key.lower()
            if lowered in _SECRET_KEYS:
                redacted[key] = "<redacted>"
            elif lowered in _COORDINATE_KEYS:
                redacted[key] = _coarsen(v)
            else:
                redacted[key] = redact_for_log(v, max_items=max_items, max_string=max_string)
        return redacted

    if isinstance(value, (list, tuple)):
        items = [redact_for_log(v, max_items=max_items, max_string=max_string) for v in value[:max_items]]
        if len(value) > max_items:
            items.append(f"<+{len(value) - max_items} more>")
        return items

    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value
