from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

import pytest

from pyfieldtrack.client import FieldTrackClient
from pyfieldtrack.config import FieldTrackConfig
from pyfieldtrack.exceptions import (
    FieldTrackNetworkError,
    SensorPermissionDeniedError,
    SensorUnavailableError,
)
from pyfieldtrack.models.location import LocationAck, LocationReading
from pyfieldtrack.sensors import PositionError, SensorAdapter, StaticGeolocationProvider
from pyfieldtrack.state.store import PresenceStore
from pyfieldtrack.tracking.scheduler import TrackingScheduler, TrackingState


class _RecordingSubmit:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, LocationReading]] = []
        self.error = error
        self.gate: asyncio.Event | None = None

    async def __call__(self, device_id: str, reading: LocationReading) -> LocationAck:
        self.calls.append((device_id, reading))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return LocationAck(tracker_id="trk-1")


class _AckTransport:
    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        return {"data": {"success": True, "trackerId": "trk-1", "timestamp": "2026-03-01T08:30:00Z"}}


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


def _sensor() -> tuple[SensorAdapter, StaticGeolocationProvider]:
    geolocation = StaticGeolocationProvider(33.57, -7.59)
    return SensorAdapter(geolocation), geolocation


@pytest.mark.asyncio
async def test_start_tracking_twice_arms_one_timer() -> None:
    sensor, geolocation = _sensor()
    submit = _RecordingSubmit()
    scheduler = TrackingScheduler(sensor, submit, "D1", interval=10.0)

    scheduler.start_tracking()
    handle = scheduler._handle
    scheduler.start_tracking()
    await scheduler.wait_until_settled()

    assert scheduler.state is TrackingState.TRACKING
    assert scheduler._handle is handle
    assert geolocation.calls == 1
    assert len(submit.calls) == 1
    scheduler.stop_tracking()


@pytest.mark.asyncio
async def test_stop_tracking_prevents_further_ticks() -> None:
    sensor, geolocation = _sensor()
    scheduler = TrackingScheduler(sensor, _RecordingSubmit(), "D1", interval=0.05)

    scheduler.start_tracking()
    await scheduler.wait_until_settled()
    scheduler.stop_tracking()
    calls_at_stop = geolocation.calls
    await asyncio.sleep(0.2)

    assert scheduler.state is TrackingState.IDLE
    assert scheduler.has_armed_timer is False
    assert geolocation.calls == calls_at_stop == 1


@pytest.mark.asyncio
async def test_timer_keeps_fixed_cadence() -> None:
    sensor, geolocation = _sensor()
    updates: list[str] = []
    scheduler = TrackingScheduler(
        sensor,
        _RecordingSubmit(),
        "D1",
        interval=0.03,
        on_update=lambda device_id, _reading, _ack: updates.append(device_id),
    )

    scheduler.start_tracking()
    await _wait_until(lambda: len(updates) >= 3)
    scheduler.stop_tracking()
    await scheduler.wait_until_settled()

    assert geolocation.calls >= 3
    assert updates[0] == "D1"
    assert scheduler.ticks == len(updates)


@pytest.mark.asyncio
async def test_three_timer_ticks_add_three_activity_lines() -> None:
    sensor, _geolocation = _sensor()
    store = PresenceStore()
    async with FieldTrackClient(FieldTrackConfig(), presence_store=store, transport=_AckTransport()) as client:
        def stop_after_three(_device_id: str, _reading: LocationReading, _ack: LocationAck) -> None:
            if scheduler.ticks == 3:
                scheduler.stop_tracking()

        scheduler = TrackingScheduler(
            sensor, client.submit_location, "D1", interval=0.01, on_update=stop_after_three
        )
        async with scheduler:
            scheduler.start_tracking()
            await _wait_until(lambda: not scheduler.is_tracking)
            await scheduler.wait_until_settled()

            assert scheduler.ticks == 3
        assert scheduler.is_tracking is False

    assert len(store.activity) == 3
    assert all(line.endswith("Tracker trk-1 location updated") for line in store.activity)
    entry = store.get("trk-1")
    assert entry is not None
    assert entry.status == "online"


@pytest.mark.asyncio
async def test_refresh_ticks_outside_the_timer() -> None:
    sensor, geolocation = _sensor()
    scheduler = TrackingScheduler(sensor, _RecordingSubmit(), "D1", interval=10.0)

    scheduler.start_tracking()
    await scheduler.wait_until_settled()
    await scheduler.refresh()
    await scheduler.refresh()

    assert scheduler.ticks == 3
    assert geolocation.calls == 3
    scheduler.stop_tracking()



@pytest.mark.asyncio
async def test_sensor_failure_is_surfaced_and_timer_stays_armed() -> None:
    sensor, geolocation = _sensor()
    geolocation.fail_with(PositionError.PERMISSION_DENIED)
    errors: list[Exception] = []
    submit = _RecordingSubmit()
    scheduler = TrackingScheduler(sensor, submit, "D1", interval=0.03, on_error=errors.append)

    scheduler.start_tracking()
    await _wait_until(lambda: len(errors) >= 2)

    assert scheduler.is_tracking is True
    assert scheduler.has_armed_timer is True
    assert scheduler.is_error is True
    assert isinstance(scheduler.error, SensorPermissionDeniedError)
    assert len(errors) >= 2
    assert submit.calls == []

    geolocation.move_to(33.6, -7.6)
    await _wait_until(lambda: scheduler.current_location is not None)
    scheduler.stop_tracking()
    await scheduler.wait_until_settled()

    assert scheduler.is_error is False
    assert scheduler.current_location is not None
    assert scheduler.current_location.latitude == 33.6


@pytest.mark.asyncio
async def test_submit_failure_counts_dropped_point() -> None:
    sensor, _geolocation = _sensor()
    scheduler = TrackingScheduler(
        sensor, _RecordingSubmit(error=FieldTrackNetworkError("offline")), "D1", interval=10.0
    )

    scheduler.start_tracking()
    await scheduler.wait_until_settled()
    await scheduler.refresh()

    assert scheduler.dropped_points == 2
    assert isinstance(scheduler.error, FieldTrackNetworkError)
    assert scheduler.has_armed_timer is True
    scheduler.stop_tracking()


@pytest.mark.asyncio
async def test_location_unsupported_never_arms() -> None:
    errors: list[Exception] = []
    submit = _RecordingSubmit()
    scheduler = TrackingScheduler(SensorAdapter(), submit, "D1", interval=0.01, on_error=errors.append)

    scheduler.start_tracking()
    await asyncio.sleep(0.05)

    assert scheduler.state is TrackingState.IDLE
    assert scheduler.has_armed_timer is False
    assert isinstance(scheduler.error, SensorUnavailableError)
    assert len(errors) == 1
    assert submit.calls == []


@pytest.mark.asyncio
async def test_empty_device_id_is_noop() -> None:
    sensor, geolocation = _sensor()
    scheduler = TrackingScheduler(sensor, _RecordingSubmit(), "  ", interval=0.01)

    scheduler.start_tracking()
    await asyncio.sleep(0.03)

    assert scheduler.is_tracking is False
    assert geolocation.calls == 0


@pytest.mark.asyncio
async def test_in_flight_tick_result_discarded_after_stop() -> None:
    sensor, _geolocation = _sensor()
    submit = _RecordingSubmit()
    submit.gate = asyncio.Event()
    updates: list[LocationAck] = []
    scheduler = TrackingScheduler(
        sensor, submit, "D1", interval=10.0, on_update=lambda _d, _r, ack: updates.append(ack)
    )

    scheduler.start_tracking()
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    scheduler.stop_tracking()
    submit.gate.set()
    await scheduler.wait_until_settled()

    assert len(submit.calls) == 1
    assert updates == []
    assert scheduler.last_ack is None
    assert scheduler.has_armed_timer is False


@pytest.mark.asyncio
async def test_timer_fire_skipped_while_tick_in_flight() -> None:
    sensor, geolocation = _sensor()
    submit = _RecordingSubmit()
    submit.gate = asyncio.Event()
    scheduler = TrackingScheduler(sensor, submit, "D1", interval=0.02)

    scheduler.start_tracking()
    await _wait_until(lambda: scheduler.skipped_ticks >= 2)

    assert geolocation.calls == 1

    scheduler.stop_tracking()
    submit.gate.set()
    await scheduler.wait_until_settled()


def test_interval_must_be_positive() -> None:
    sensor, _geolocation = _sensor()
    with pytest.raises(ValueError):
        TrackingScheduler(sensor, _RecordingSubmit(), "D1", interval=0)
