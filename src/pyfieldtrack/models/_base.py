"""Base model and enum for tracking API responses.

Every response model inherits from :class:`FieldTrackBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that strips placeholder
  values (``None``, ``""``, ``"--"``, NaN) so the field default is used.
* A ``raw`` dict that captures the original payload.

String enums inherit from :class:`FieldTrackEnum` which adds an ``UNKNOWN``
member and a ``_missing_`` hook that returns ``UNKNOWN`` for any value
without a mapped member.
"""

from __future__ import annotations

import enum
import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

_SENTINELS = frozenset({"", "--", "NaN", "nan", "null"})

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_api_timestamp(value: Any) -> datetime | None:
    """Convert an ISO-8601 string or epoch number (s or ms) to a UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


ApiTimestamp = Annotated[datetime | None, BeforeValidator(parse_api_timestamp)]
"""Annotated type that coerces ISO strings or epoch values to UTC datetimes."""


class FieldTrackEnum(enum.StrEnum):
    """Base for API string enums.

    Every subclass **must** define ``UNKNOWN = "unknown"``.
    """

    @classmethod
    def _missing_(cls, value: object) -> FieldTrackEnum:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        unknown: FieldTrackEnum = cls.UNKNOWN  # type: ignore[attr-defined]
        return unknown


class FieldTrackBaseModel(BaseModel):
    """Base for API response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original API response dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_api_values(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = FieldTrackBaseModel._clean_dict(values)
        # Keep an explicitly passed raw= intact.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
