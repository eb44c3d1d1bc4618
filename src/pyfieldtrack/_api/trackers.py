"""Tracker endpoints.

Endpoints:
  - POST /trackers/device/location (ingestion)
  - POST /trackers/device/status
  - GET  /trackers/{id}
  - GET  /trackers/device/{deviceId}
  - GET  /trackers/{id}/location/current
  - GET  /trackers/{id}/location/history
  - PUT  /trackers/offline/mark (offline sweep)
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from pyfieldtrack._api._common import parse_model, parse_model_list, path_segment, request_data
from pyfieldtrack._transport import Transport
from pyfieldtrack.exceptions import FieldTrackNotFoundError, FieldTrackValidationError
from pyfieldtrack.models.location import LocationAck, LocationReading, LocationSample
from pyfieldtrack.models.requests import (
    DeviceStatusRequest,
    LocationHistoryRequest,
    LocationUpdateRequest,
    OfflineSweepRequest,
)
from pyfieldtrack.models.tracker import OfflineSweepResult, Tracker

_logger = logging.getLogger(__name__)

LOCATION_ENDPOINT = "/trackers/device/location"
STATUS_ENDPOINT = "/trackers/device/status"
OFFLINE_SWEEP_ENDPOINT = "/trackers/offline/mark"


def build_location_request(device_id: str, reading: LocationReading) -> LocationUpdateRequest:
    """Validate a reading client-side before it is sent.

    Raises
    ------
    FieldTrackValidationError
        Empty device id, or coordinates/battery/speed out of range.
    """
    try:
        return LocationUpdateRequest.from_reading(device_id, reading)
    except ValidationError as exc:
        fields = ", ".join(sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")}))
        raise FieldTrackValidationError(
            f"Location update for {device_id!r} rejected before sending: invalid {fields or 'payload'}",
            endpoint=LOCATION_ENDPOINT,
        ) from exc


async def submit_location(transport: Transport, device_id: str, reading: LocationReading) -> LocationAck:
    """Send one location reading to the ingestion endpoint.

    On success the server has appended a location sample and set the
    tracker's ``lastSeen``/``isOnline``. Submissions are not idempotent:
    sending the same reading twice stores two samples.

    Raises
    ------
    FieldTrackValidationError
        Rejected client-side, or by the server (out-of-range values,
        unknown device id).
    FieldTrackNetworkError
        Transport failure; the point is dropped.
    """
    request = build_location_request(device_id, reading)
    try:
        data, message = await request_data(
            transport,
            "POST",
            LOCATION_ENDPOINT,
            json_body=request.to_payload(),
        )
    except FieldTrackNotFoundError as exc:
        raise FieldTrackValidationError(
            f"Unknown device {request.device_id!r}: {exc}",
            status_code=exc.status_code,
            endpoint=LOCATION_ENDPOINT,
        ) from exc

    ack = parse_model(LOCATION_ENDPOINT, LocationAck, data if isinstance(data, dict) else {})
    if message and ack.message is None:
        ack = ack.model_copy(update={"message": message})
    _logger.debug("Location accepted device=%s tracker=%s at=%s", request.device_id, ack.tracker_id, ack.timestamp)
    return ack


async def update_device_status(transport: Transport, request: DeviceStatusRequest) -> Tracker:
    data, _message = await request_data(transport, "POST", STATUS_ENDPOINT, json_body=request.to_payload())
    return parse_model(STATUS_ENDPOINT, Tracker, data)


async def fetch_tracker(transport: Transport, tracker_id: str) -> Tracker:
    endpoint = f"/trackers/{path_segment(tracker_id)}"
    data, _message = await request_data(transport, "GET", endpoint)
    return parse_model(endpoint, Tracker, data)


async def fetch_tracker_by_device_id(transport: Transport, device_id: str) -> Tracker:
    endpoint = f"/trackers/device/{path_segment(device_id)}"
    data, _message = await request_data(transport, "GET", endpoint)
    return parse_model(endpoint, Tracker, data)


async def fetch_current_location(transport: Transport, tracker_id: str) -> LocationSample | None:
    endpoint = f"/trackers/{path_segment(tracker_id)}/location/current"
    data, _message = await request_data(transport, "GET", endpoint)
    if not data:
        return None
    return parse_model(endpoint, LocationSample, data)


async def fetch_location_history(transport: Transport, request: LocationHistoryRequest) -> list[LocationSample]:
    """Fetch stored samples, newest first (server-timestamp order)."""
    endpoint = f"/trackers/{path_segment(request.tracker_id)}/location/history"
    data, _message = await request_data(transport, "GET", endpoint, params=request.to_params())
    return parse_model_list(endpoint, LocationSample, data)


async def mark_offline_trackers(transport: Transport, request: OfflineSweepRequest) -> OfflineSweepResult:
    """Ask the server to flip trackers silent past the threshold to offline."""
    data, _message = await request_data(
        transport,
        "PUT",
        OFFLINE_SWEEP_ENDPOINT,
        json_body=request.to_payload(),
    )
    return parse_model(OFFLINE_SWEEP_ENDPOINT, OfflineSweepResult, data if isinstance(data, dict) else {})
