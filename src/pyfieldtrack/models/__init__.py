"""Data models for the tracking API."""

from pyfieldtrack.models._base import ApiTimestamp, FieldTrackBaseModel, FieldTrackEnum, parse_api_timestamp
from pyfieldtrack.models.location import LocationAck, LocationReading, LocationSample
from pyfieldtrack.models.operation import NamedRef, Operation, OperationStatus, OperatorRef, TrackerRef
from pyfieldtrack.models.requests import (
    DeviceStatusRequest,
    LocationHistoryRequest,
    LocationUpdateRequest,
    OfflineSweepRequest,
)
from pyfieldtrack.models.tracker import OfflineSweepResult, Tracker, TrackerMode, TrackerSource, TrackerStatus

__all__ = [
    "ApiTimestamp",
    "DeviceStatusRequest",
    "FieldTrackBaseModel",
    "FieldTrackEnum",
    "LocationAck",
    "LocationHistoryRequest",
    "LocationReading",
    "LocationSample",
    "LocationUpdateRequest",
    "NamedRef",
    "OfflineSweepRequest",
    "OfflineSweepResult",
    "Operation",
    "OperationStatus",
    "OperatorRef",
    "Tracker",
    "TrackerMode",
    "TrackerRef",
    "TrackerSource",
    "TrackerStatus",
    "parse_api_timestamp",
]
