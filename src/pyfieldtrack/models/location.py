"""Location models: sensor readings, stored samples and ingestion acks."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from pyfieldtrack.ingestion.normalize import safe_bool, safe_float, safe_int
from pyfieldtrack.models._base import ApiTimestamp, FieldTrackBaseModel


class LocationReading(BaseModel):
    """One client-side sensor reading.

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    altitude : float or None
        Altitude in metres, when the provider reports one.
    speed : float or None
        Ground speed in m/s, when the provider reports one.
    accuracy : float or None
        Horizontal accuracy radius in metres.
    battery_level : int or None
        Device battery in percent. Omitted when no battery capability exists.
    read_at : datetime
        Local time of the read. Informational only; never sent to the server.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    latitude: float
    longitude: float
    altitude: float | None = None
    speed: float | None = None
    accuracy: float | None = None
    battery_level: int | None = None
    read_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_moving(self) -> bool:
        return self.speed is not None and self.speed > 0


class LocationSample(FieldTrackBaseModel):
    """A persisted location history row. Append-only on the server."""

    id: str | None = None
    tracker_id: str
    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lng", "lon"))
    altitude: float | None = None
    speed: float | None = None
    battery_level: int | None = None
    is_moving: bool = False
    timestamp: ApiTimestamp = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_location(cls, values: Any) -> Any:
        # History rows nest coordinates as {"location": {"lat": .., "lng": ..}}.
        if not isinstance(values, dict):
            return values
        nested = values.get("location")
        if isinstance(nested, dict):
            merged = dict(values)
            merged.update(nested)
            merged.setdefault("raw", dict(values))
            return merged
        return values

    @field_validator("altitude", "speed", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("battery_level", mode="before")
    @classmethod
    def _coerce_battery(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("is_moving", mode="before")
    @classmethod
    def _coerce_moving(cls, value: Any) -> bool:
        return bool(safe_bool(value))


class LocationAck(FieldTrackBaseModel):
    """Server acknowledgement of an accepted location update.

    The ingestion endpoint answers either with a small receipt
    (``{success, trackerId, timestamp}``) or with the updated tracker
    record; both shapes are accepted. ``timestamp`` is the server's
    receipt time.
    """

    success: bool = True
    tracker_id: str | None = None
    timestamp: ApiTimestamp = None
    is_online: bool = True
    message: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_tracker_record(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "deviceId" not in values:
            return values
        merged = dict(values)
        merged.setdefault("trackerId", values.get("id"))
        merged.setdefault("timestamp", values.get("lastSeen"))
        merged.setdefault("raw", dict(values))
        return merged
