"""Broker payload helpers.

This module translates decoded tracker-data messages into normalized
presence events. Messages look like::

    {"trackerId": "T1", "type": "location", "latitude": 33.5, "longitude": -7.6,
     "speed": 12, "battery": 80}

``type`` may be omitted, in which case it is inferred from the keys present.
A location message that also carries health fields yields two events.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from pyfieldtrack.ingestion.normalize import battery_percent, safe_float, safe_str
from pyfieldtrack.models._base import parse_api_timestamp
from pyfieldtrack.state.events import (
    AlarmSeverity,
    PresenceEvent,
    PresenceEventKind,
    TrackerAlarm,
    TrackerLocation,
    TrackerStatusData,
)

_logger = logging.getLogger(__name__)

_ID_KEYS = ("trackerId", "deviceId", "id")
_LATITUDE_KEYS = ("latitude", "lat")
_LONGITUDE_KEYS = ("longitude", "lng", "lon")
_HEALTH_KEYS = ("battery", "batteryLevel", "signal", "temperature", "voltage")


def _first(payload: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _section(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    """Nested object under *key*, falling back to the flat payload."""
    nested = payload.get(key)
    return nested if isinstance(nested, Mapping) else payload


def _timestamp(value: Any) -> datetime | None:
    try:
        return parse_api_timestamp(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _infer_kind(payload: Mapping[str, Any]) -> PresenceEventKind | None:
    raw_type = safe_str(payload.get("type"))
    if raw_type is not None:
        try:
            return PresenceEventKind(raw_type.lower())
        except ValueError:
            return None
    if "alarm" in payload or "alarmType" in payload:
        return PresenceEventKind.ALARM
    location = _section(payload, "location")
    if _first(location, _LATITUDE_KEYS) is not None:
        return PresenceEventKind.LOCATION
    if any(key in _section(payload, "status") for key in _HEALTH_KEYS):
        return PresenceEventKind.STATUS
    return None


def _parse_location(payload: Mapping[str, Any]) -> TrackerLocation | None:
    section = _section(payload, "location")
    latitude = safe_float(_first(section, _LATITUDE_KEYS))
    longitude = safe_float(_first(section, _LONGITUDE_KEYS))
    if latitude is None or longitude is None:
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        _logger.debug("Dropping out-of-range location %s,%s", latitude, longitude)
        return None
    data: dict[str, Any] = {
        "latitude": latitude,
        "longitude": longitude,
        "speed": safe_float(section.get("speed")) or 0.0,
        "heading": safe_float(section.get("heading")) or 0.0,
        "altitude": safe_float(section.get("altitude")),
    }
    timestamp = _timestamp(section.get("timestamp") or payload.get("timestamp"))
    if timestamp is not None:
        data["timestamp"] = timestamp
    return TrackerLocation(**data)


def _parse_status(payload: Mapping[str, Any]) -> TrackerStatusData | None:
    section = _section(payload, "status")
    status = TrackerStatusData(
        battery=battery_percent(_first(section, ("battery", "batteryLevel"))),
        signal=safe_float(section.get("signal")),
        temperature=safe_float(section.get("temperature")),
        voltage=safe_float(section.get("voltage")),
    )
    if not status.model_dump(exclude_none=True):
        return None
    return status


def _parse_alarm(payload: Mapping[str, Any]) -> TrackerAlarm:
    section = _section(payload, "alarm")
    alarm_type = safe_str(section.get("alarmType"))
    if alarm_type is None and section is not payload:
        alarm_type = safe_str(section.get("type"))
    alarm_type = alarm_type or "generic"
    message = safe_str(section.get("message")) or alarm_type
    severity_raw = safe_str(section.get("severity"))
    try:
        severity = AlarmSeverity(severity_raw.lower()) if severity_raw else None
    except ValueError:
        severity = None
    data: dict[str, Any] = {"alarm_type": alarm_type, "message": message, "severity": severity}
    timestamp = _timestamp(section.get("timestamp") or payload.get("timestamp"))
    if timestamp is not None:
        data["timestamp"] = timestamp
    return TrackerAlarm(**data)


def build_presence_events(payload: Mapping[str, Any], *, topic: str | None = None) -> list[PresenceEvent]:
    """Build presence events from one decoded broker message.

    Parameters
    ----------
    payload : Mapping[str, Any]
        Decoded JSON object.
    topic : str or None
        Topic the message arrived on, used for debug logging only.

    Returns
    -------
    list[PresenceEvent]
        Events to apply in order. Malformed or unrecognized payloads yield
        an empty list.
    """
    tracker_id = safe_str(_first(payload, _ID_KEYS))
    if tracker_id is None:
        _logger.debug("Ignoring message without tracker id topic=%s", topic)
        return []

    kind = _infer_kind(payload)
    if kind is None:
        _logger.debug("Ignoring message with unknown type topic=%s tracker=%s", topic, tracker_id)
        return []

    name = safe_str(payload.get("name"))
    observed_at = _timestamp(payload.get("timestamp"))
    common: dict[str, Any] = {"tracker_id": tracker_id, "name": name, "raw": dict(payload)}
    if observed_at is not None:
        common["observed_at"] = observed_at

    events: list[PresenceEvent] = []
    try:
        if kind == PresenceEventKind.LOCATION:
            location = _parse_location(payload)
            if location is None:
                return []
            events.append(PresenceEvent(kind=kind, location=location, **common))
            status = _parse_status(payload)
            if status is not None:
                events.append(PresenceEvent(kind=PresenceEventKind.STATUS, status=status, **common))
        elif kind == PresenceEventKind.STATUS:
            status = _parse_status(payload)
            if status is None:
                return []
            events.append(PresenceEvent(kind=kind, status=status, **common))
        elif kind == PresenceEventKind.ALARM:
            events.append(PresenceEvent(kind=kind, alarm=_parse_alarm(payload), **common))
        else:
            location = _parse_location(payload) if kind == PresenceEventKind.ADDED else None
            events.append(PresenceEvent(kind=kind, location=location, **common))
    except ValidationError:
        _logger.debug("Invalid presence payload topic=%s tracker=%s", topic, tracker_id, exc_info=True)
        return []
    return events
