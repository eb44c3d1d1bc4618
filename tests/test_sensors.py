from __future__ import annotations

import asyncio

import pytest

from pyfieldtrack.exceptions import (
    SensorPermissionDeniedError,
    SensorTimeoutError,
    SensorUnavailableError,
)
from pyfieldtrack.sensors import (
    Position,
    PositionError,
    SensorAdapter,
    StaticBatteryProvider,
    StaticGeolocationProvider,
    sensor_error_from_code,
)


class SlowGeolocation:
    async def get_current_position(self, *, high_accuracy: bool, timeout: float, maximum_age: float) -> Position:
        await asyncio.sleep(10)
        raise AssertionError("unreachable")


class HangingBattery:
    async def get_level(self) -> float:
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


class BrokenBattery:
    async def get_level(self) -> float:
        raise RuntimeError("battery api gone")


@pytest.mark.asyncio
async def test_read_returns_reading_with_battery_percent() -> None:
    geolocation = StaticGeolocationProvider(33.57, -7.59, altitude=40.0)
    geolocation.move_to(33.58, -7.6, speed=4.2)
    adapter = SensorAdapter(geolocation, StaticBatteryProvider(0.5))

    reading = await adapter.read()

    assert reading.latitude == 33.58
    assert reading.longitude == -7.6
    assert reading.altitude == 40.0
    assert reading.speed == 4.2
    assert reading.is_moving is True
    assert reading.battery_level == 50
    assert geolocation.calls == 1


@pytest.mark.asyncio
async def test_missing_or_failing_battery_is_omitted() -> None:
    geolocation = StaticGeolocationProvider(1.0, 2.0)

    without_battery = SensorAdapter(geolocation)
    assert without_battery.is_battery_supported is False
    assert (await without_battery.read()).battery_level is None

    broken = SensorAdapter(geolocation, BrokenBattery())
    assert (await broken.read()).battery_level is None

    out_of_range = SensorAdapter(geolocation, StaticBatteryProvider(1.7))
    assert (await out_of_range.read()).battery_level is None


@pytest.mark.asyncio
async def test_read_without_geolocation_is_unavailable() -> None:
    adapter = SensorAdapter()
    assert adapter.is_location_supported is False
    with pytest.raises(SensorUnavailableError):
        await adapter.read()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("code", "error_cls"),
    [
        (PositionError.PERMISSION_DENIED, SensorPermissionDeniedError),
        (PositionError.POSITION_UNAVAILABLE, SensorUnavailableError),
        (PositionError.TIMEOUT, SensorTimeoutError),
    ],
)
async def test_position_errors_map_to_sensor_errors(code: int, error_cls: type[Exception]) -> None:
    geolocation = StaticGeolocationProvider(1.0, 2.0)
    geolocation.fail_with(code)
    with pytest.raises(error_cls):
        await SensorAdapter(geolocation).read()


@pytest.mark.asyncio
async def test_read_is_bounded_by_timeout() -> None:
    adapter = SensorAdapter(SlowGeolocation(), timeout=0.05)
    with pytest.raises(SensorTimeoutError):
        await adapter.read()


@pytest.mark.asyncio
async def test_battery_and_location_share_one_timeout() -> None:
    adapter = SensorAdapter(SlowGeolocation(), HangingBattery(), timeout=0.5)
    loop = asyncio.get_running_loop()

    started = loop.time()
    with pytest.raises(SensorTimeoutError):
        await adapter.read()

    assert loop.time() - started < 0.85


@pytest.mark.asyncio
async def test_hanging_battery_does_not_block_an_immediate_fix() -> None:
    adapter = SensorAdapter(StaticGeolocationProvider(1.0, 2.0), HangingBattery(), timeout=0.1)

    reading = await adapter.read()

    assert reading.latitude == 1.0
    assert reading.battery_level is None

def test_sensor_error_codes() -> None:
    assert sensor_error_from_code(1).code == 1
    assert isinstance(sensor_error_from_code(99), SensorUnavailableError)
    with pytest.raises(ValueError):
        SensorAdapter(timeout=0)
