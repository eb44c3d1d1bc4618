"""Pydantic request models for client entrypoints.

These models provide a consistent "validate → normalize → execute" flow.
They are used internally by :class:`pyfieldtrack.client.FieldTrackClient`.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from pyfieldtrack._constants import BATTERY_RANGE, LATITUDE_RANGE, LONGITUDE_RANGE
from pyfieldtrack.models.location import LocationReading

_MAX_HISTORY_RANGE = timedelta(days=365)


class DeviceRequest(BaseModel):
    """Request addressed to a device id."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    device_id: str

    @field_validator("device_id")
    @classmethod
    def _device_id_non_empty(cls, value: str) -> str:
        device_id = value.strip()
        if not device_id:
            raise ValueError("device_id must be non-empty")
        return device_id


class LocationUpdateRequest(DeviceRequest):
    """Body of ``POST /trackers/device/location``.

    Carries no timestamp: the server stamps samples on receipt.
    """

    latitude: float = Field(ge=LATITUDE_RANGE[0], le=LATITUDE_RANGE[1], allow_inf_nan=False)
    longitude: float = Field(ge=LONGITUDE_RANGE[0], le=LONGITUDE_RANGE[1], allow_inf_nan=False)
    altitude: float | None = Field(default=None, allow_inf_nan=False)
    speed: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    accuracy: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    battery_level: int | None = Field(default=None, ge=BATTERY_RANGE[0], le=BATTERY_RANGE[1])
    is_moving: bool | None = None

    @classmethod
    def from_reading(cls, device_id: str, reading: LocationReading) -> LocationUpdateRequest:
        return cls(
            device_id=device_id,
            latitude=reading.latitude,
            longitude=reading.longitude,
            altitude=reading.altitude,
            speed=reading.speed,
            accuracy=reading.accuracy,
            battery_level=reading.battery_level,
            is_moving=reading.is_moving,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DeviceStatusRequest(DeviceRequest):
    """Body of ``POST /trackers/device/status``."""

    is_online: bool | None = None
    last_seen: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class LocationHistoryRequest(BaseModel):
    """Query for ``GET /trackers/{id}/location/history``."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    tracker_id: str
    limit: int | None = Field(default=None, ge=1, le=1000)
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("tracker_id")
    @classmethod
    def _tracker_id_non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("tracker_id must be non-empty")
        return value

    @model_validator(mode="after")
    def _check_range(self) -> LocationHistoryRequest:
        if self.start_date is not None and self.end_date is not None:
            if self.end_date <= self.start_date:
                raise ValueError("end_date must be after start_date")
            if self.end_date - self.start_date > _MAX_HISTORY_RANGE:
                raise ValueError("date range must not exceed 365 days")
        return self

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.limit is not None:
            params["limit"] = str(self.limit)
        if self.start_date is not None:
            params["startDate"] = self.start_date.isoformat()
        if self.end_date is not None:
            params["endDate"] = self.end_date.isoformat()
        return params


class OfflineSweepRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_minutes: int = Field(default=30, ge=1)

    def to_payload(self) -> dict[str, Any]:
        return {"timeoutMinutes": self.timeout_minutes}
