from __future__ import annotations

from datetime import UTC, datetime

from pyfieldtrack.ingestion.presence import build_presence_events
from pyfieldtrack.state.events import AlarmSeverity, PresenceEventKind


def test_location_message_with_battery_yields_two_events() -> None:
    events = build_presence_events(
        {
            "trackerId": "T1",
            "type": "location",
            "latitude": 33.57,
            "longitude": -7.59,
            "speed": "12",
            "battery": 80,
            "timestamp": "2026-03-01T08:30:00Z",
        },
        topic="trackers/vehicles/data",
    )

    assert [event.kind for event in events] == [PresenceEventKind.LOCATION, PresenceEventKind.STATUS]
    location = events[0].location
    assert location is not None
    assert location.speed == 12.0
    assert location.timestamp == datetime(2026, 3, 1, 8, 30, tzinfo=UTC)
    assert events[1].status is not None
    assert events[1].status.battery == 80
    assert events[0].raw["trackerId"] == "T1"


def test_type_is_inferred_from_keys() -> None:
    nested = build_presence_events({"deviceId": "GPS-9", "location": {"lat": 1.0, "lng": 2.0}})
    assert [event.kind for event in nested] == [PresenceEventKind.LOCATION]
    assert nested[0].tracker_id == "GPS-9"

    status = build_presence_events({"id": "T2", "signal": 4, "voltage": "12.6"})
    assert [event.kind for event in status] == [PresenceEventKind.STATUS]
    assert status[0].status is not None
    assert status[0].status.voltage == 12.6


def test_alarm_message() -> None:
    events = build_presence_events(
        {"trackerId": "T3", "type": "alarm", "alarmType": "sos", "message": "Panic button", "severity": "HIGH"}
    )

    assert len(events) == 1
    alarm = events[0].alarm
    assert alarm is not None
    assert alarm.alarm_type == "sos"
    assert alarm.message == "Panic button"
    assert alarm.severity is AlarmSeverity.HIGH


def test_nested_alarm_defaults() -> None:
    events = build_presence_events({"trackerId": "T3", "alarm": {"type": "geofence"}})
    assert events[0].alarm is not None
    assert events[0].alarm.alarm_type == "geofence"
    assert events[0].alarm.message == "geofence"
    assert events[0].alarm.severity is None


def test_offline_message() -> None:
    events = build_presence_events({"trackerId": "T4", "type": "offline"})
    assert [event.kind for event in events] == [PresenceEventKind.OFFLINE]


def test_invalid_payloads_yield_nothing() -> None:
    assert build_presence_events({"type": "location", "latitude": 1, "longitude": 2}) == []
    assert build_presence_events({"trackerId": "T1", "type": "teleport"}) == []
    assert build_presence_events({"trackerId": "T1", "type": "location", "latitude": 95, "longitude": 2}) == []
    assert build_presence_events({"trackerId": "T1", "type": "status", "battery": 180}) == []
    assert build_presence_events({"trackerId": "T1"}) == []
