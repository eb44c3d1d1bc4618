"""Normalization helpers.

Centralizes lenient parsing and placeholder handling for device payloads.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def safe_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return None


def round_half_up(value: float) -> int:
    """Round like a browser's ``Math.round`` (halves go up, not to even)."""
    return int(math.floor(value + 0.5))


def battery_percent(value: Any) -> int | None:
    """Normalize a battery percentage; out-of-range values are dropped."""
    parsed = safe_float(value)
    if parsed is None or not 0.0 <= parsed <= 100.0:
        return None
    return round_half_up(parsed)

