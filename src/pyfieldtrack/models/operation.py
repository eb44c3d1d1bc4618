"""Field operation model.

Only the fields needed to decide on and resume a tracking session are
mapped; everything else stays available through ``raw``.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field

from pyfieldtrack._constants import DEFAULT_TRACKING_INTERVAL, refresh_to_seconds
from pyfieldtrack.models._base import ApiTimestamp, FieldTrackBaseModel, FieldTrackEnum


class OperationStatus(FieldTrackEnum):
    UNKNOWN = "unknown"
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OperatorRef(FieldTrackBaseModel):
    """Operator assigned to an operation."""

    id: str | None = None
    user_id: str | None = None
    name: str | None = None


class TrackerRef(FieldTrackBaseModel):
    """Tracker attached to an operation."""

    id: str | None = None
    device_id: str | None = None
    name: str | None = None
    refresh_interval: float | None = None
    refresh_unit: str = "s"


class NamedRef(FieldTrackBaseModel):
    id: str | None = None
    name: str | None = None


class Operation(FieldTrackBaseModel):
    """A field operation from ``/operations/today/operator/{operatorId}``."""

    id: str
    status: OperationStatus = OperationStatus.UNKNOWN
    operation_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("operationType", "operation_type", "type"),
    )
    operator: OperatorRef | None = None
    tracker: TrackerRef | None = None
    vehicle: NamedRef | None = None
    field: NamedRef | None = None
    start_time: ApiTimestamp = None
    end_time: ApiTimestamp = None

    @property
    def is_active(self) -> bool:
        return self.status == OperationStatus.ACTIVE

    @property
    def operator_user_id(self) -> str | None:
        return self.operator.user_id if self.operator is not None else None

    @property
    def device_id(self) -> str | None:
        if self.tracker is None or not self.tracker.device_id:
            return None
        return self.tracker.device_id

    def tracking_interval(self, default: float = DEFAULT_TRACKING_INTERVAL) -> float:
        """Seconds between tracking ticks for this operation's tracker."""
        tracker = self.tracker
        if tracker is None or tracker.refresh_interval is None or tracker.refresh_interval <= 0:
            return default
        try:
            return refresh_to_seconds(tracker.refresh_interval, tracker.refresh_unit)
        except ValueError:
            return default
