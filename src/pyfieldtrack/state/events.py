"""Normalized presence events.

All presence inputs (scheduler acks, broker messages, explicit lifecycle
calls) can be expressed as these events. Only the presence store is
allowed to merge them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PresenceStatus(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"
    IDLE = "idle"
    ALARM = "alarm"


class AlarmSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TrackerLocation(BaseModel):
    """Last known position of a tracker, as shown on the live map."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    speed: float = 0.0
    heading: float = 0.0
    altitude: float | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class TrackerStatusData(BaseModel):
    """Device health fields. Every field is optional; merges are per field."""

    model_config = ConfigDict(frozen=True)

    battery: float | None = None
    signal: float | None = None
    temperature: float | None = None
    voltage: float | None = None

    def merged_with(self, patch: TrackerStatusData) -> TrackerStatusData:
        """Return a copy where every field set in *patch* overwrites ours."""
        update = patch.model_dump(exclude_none=True)
        return self.model_copy(update=update)


class TrackerAlarm(BaseModel):
    model_config = ConfigDict(frozen=True)

    alarm_type: str
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)
    severity: AlarmSeverity | None = None


class PresenceEventKind(StrEnum):
    LOCATION = "location"
    STATUS = "status"
    ALARM = "alarm"
    OFFLINE = "offline"
    ADDED = "added"
    REMOVED = "removed"


class PresenceEvent(BaseModel):
    """A normalized update to apply to the presence store."""

    model_config = ConfigDict(frozen=True)

    tracker_id: str = Field(..., description="Tracker id")
    kind: PresenceEventKind
    observed_at: datetime = Field(default_factory=_utcnow)
    name: str | None = None
    location: TrackerLocation | None = None
    status: TrackerStatusData | None = None
    alarm: TrackerAlarm | None = None
    raw: dict[str, Any] = Field(default_factory=dict, description="Original payload (as received)")

    @field_validator("tracker_id")
    @classmethod
    def _normalize_tracker_id(cls, value: str) -> str:
        tracker_id = value.strip()
        if not tracker_id:
            raise ValueError("tracker_id must be non-empty")
        return tracker_id

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def _check_payload(self) -> PresenceEvent:
        required = {
            PresenceEventKind.LOCATION: self.location,
            PresenceEventKind.STATUS: self.status,
            PresenceEventKind.ALARM: self.alarm,
        }
        if self.kind in required and required[self.kind] is None:
            raise ValueError(f"{self.kind.value} event requires a {self.kind.value} payload")
        return self
