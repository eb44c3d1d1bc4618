"""Tracker model."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator

from pyfieldtrack._constants import DEFAULT_TRACKING_INTERVAL, refresh_to_seconds
from pyfieldtrack.ingestion.normalize import safe_float
from pyfieldtrack.models._base import ApiTimestamp, FieldTrackBaseModel, FieldTrackEnum


class TrackerStatus(FieldTrackEnum):
    """Administrative status set by an admin (not reachability)."""

    UNKNOWN = "unknown"
    ACTIVE = "active"
    INACTIVE = "inactive"


class TrackerSource(FieldTrackEnum):
    UNKNOWN = "unknown"
    PHYSICAL = "physical"
    PHONE = "phone"


class TrackerMode(FieldTrackEnum):
    UNKNOWN = "unknown"
    TRACKING = "tracking"
    MONITORING = "monitoring"
    GPRS = "gprs"
    SMS = "sms"
    SLEEP_TIME = "sleep_time"
    SLEEP_SHOCK = "sleep_shock"
    SLEEP_DEEP = "sleep_deep"


class Tracker(FieldTrackBaseModel):
    """A registered telemetry-capable device (hardware unit or phone).

    ``is_online`` and ``last_seen`` are maintained by the server: every
    accepted location update sets them, the offline sweep clears
    ``is_online`` for trackers silent longer than the sweep threshold.
    """

    id: str
    device_id: str
    name: str = ""
    vehicle_id: str | None = None
    operator_id: str | None = None
    status: TrackerStatus = TrackerStatus.ACTIVE
    is_online: bool = False
    last_seen: ApiTimestamp = None
    manufacturer: str = "Unknown"
    source: TrackerSource = TrackerSource.PHYSICAL
    mode: TrackerMode = TrackerMode.TRACKING
    refresh_interval: float | None = Field(
        default=None,
        validation_alias=AliasChoices("refreshInterval", "refresh_interval"),
    )
    refresh_unit: str = Field(default="s", validation_alias=AliasChoices("refreshUnit", "refresh_unit"))

    @field_validator("refresh_interval", mode="before")
    @classmethod
    def _coerce_interval(cls, value: object) -> float | None:
        return safe_float(value)

    @property
    def is_phone(self) -> bool:
        return self.source == TrackerSource.PHONE

    def refresh_interval_seconds(self, default: float = DEFAULT_TRACKING_INTERVAL) -> float:
        """Tracking period for this device, falling back to *default*."""
        if self.refresh_interval is None or self.refresh_interval <= 0:
            return default
        try:
            return refresh_to_seconds(self.refresh_interval, self.refresh_unit)
        except ValueError:
            return default


class OfflineSweepResult(FieldTrackBaseModel):
    """Outcome of ``PUT /trackers/offline/mark``."""

    marked_offline: int = 0
    cutoff_time: ApiTimestamp = None
