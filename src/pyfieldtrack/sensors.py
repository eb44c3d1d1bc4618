"""Sensor adapter: geolocation and battery reads.

Providers are pluggable. A geolocation provider mirrors the browser
geolocation contract (one-shot ``get_current_position`` failing with
:class:`PositionError` codes 1-3); a battery provider reports a charge
fraction in ``[0, 1]``. :class:`SensorAdapter` bounds every read with a
hard timeout and turns provider failures into :class:`SensorError`
subclasses.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from pyfieldtrack._constants import DEFAULT_POSITION_MAX_AGE, DEFAULT_SENSOR_TIMEOUT
from pyfieldtrack.exceptions import (
    SensorError,
    SensorPermissionDeniedError,
    SensorTimeoutError,
    SensorUnavailableError,
)
from pyfieldtrack.ingestion.normalize import round_half_up
from pyfieldtrack.models.location import LocationReading

_logger = logging.getLogger(__name__)


class Position(BaseModel):
    """A raw position fix as reported by a provider."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    altitude: float | None = None
    speed: float | None = None
    accuracy: float | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PositionError(Exception):
    """Provider-level failure using the geolocation API error codes."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    def __init__(self, code: int, message: str = "") -> None:
        self.code = code
        super().__init__(message or f"position error {code}")


_ERROR_MESSAGES: dict[int, str] = {
    PositionError.PERMISSION_DENIED: "Location access denied",
    PositionError.POSITION_UNAVAILABLE: "Location unavailable",
    PositionError.TIMEOUT: "Location request timeout",
}

_ERROR_CLASSES: dict[int, type[SensorError]] = {
    PositionError.PERMISSION_DENIED: SensorPermissionDeniedError,
    PositionError.POSITION_UNAVAILABLE: SensorUnavailableError,
    PositionError.TIMEOUT: SensorTimeoutError,
}


def sensor_error_from_code(code: int) -> SensorError:
    """Build the :class:`SensorError` matching a geolocation error code."""
    cls = _ERROR_CLASSES.get(code, SensorUnavailableError)
    return cls(_ERROR_MESSAGES.get(code, "Location error"))


class GeolocationProvider(Protocol):
    async def get_current_position(
        self,
        *,
        high_accuracy: bool,
        timeout: float,
        maximum_age: float,
    ) -> Position: ...


class BatteryProvider(Protocol):
    async def get_level(self) -> float: ...


class StaticGeolocationProvider:
    """Provider for fixed-position devices; also handy as a test double.

    ``fail_with(code)`` makes subsequent reads raise :class:`PositionError`
    until ``move_to`` sets a new position.
    """

    def __init__(self, latitude: float, longitude: float, *, altitude: float | None = None) -> None:
        self._position = Position(latitude=latitude, longitude=longitude, altitude=altitude, speed=0.0)
        self._error_code: int | None = None
        self.calls = 0

    def move_to(self, latitude: float, longitude: float, *, speed: float | None = None) -> None:
        self._position = Position(
            latitude=latitude,
            longitude=longitude,
            altitude=self._position.altitude,
            speed=speed,
        )
        self._error_code = None

    def fail_with(self, code: int) -> None:
        self._error_code = code

    async def get_current_position(
        self,
        *,
        high_accuracy: bool,
        timeout: float,
        maximum_age: float,
    ) -> Position:
        self.calls += 1
        if self._error_code is not None:
            raise PositionError(self._error_code)
        return self._position


class StaticBatteryProvider:
    def __init__(self, level: float) -> None:
        self.level = level

    async def get_level(self) -> float:
        return self.level


class SensorAdapter:
    """Reads one location (plus battery, when available) per call.

    Parameters
    ----------
    geolocation : GeolocationProvider or None
        Location source. ``None`` means the capability is absent.
    battery : BatteryProvider or None
        Battery source. Absence is not an error.
    timeout : float
        Hard upper bound in seconds for a location read.
    maximum_age : float
        Age in seconds of a cached fix the provider may return.
    high_accuracy : bool
        Ask the provider for its most accurate fix.
    """

    def __init__(
        self,
        geolocation: GeolocationProvider | None = None,
        battery: BatteryProvider | None = None,
        *,
        timeout: float = DEFAULT_SENSOR_TIMEOUT,
        maximum_age: float = DEFAULT_POSITION_MAX_AGE,
        high_accuracy: bool = True,
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self._geolocation = geolocation
        self._battery = battery
        self._timeout = timeout
        self._maximum_age = maximum_age
        self._high_accuracy = high_accuracy

    @property
    def is_location_supported(self) -> bool:
        return self._geolocation is not None

    @property
    def is_battery_supported(self) -> bool:
        return self._battery is not None

    @property
    def timeout(self) -> float:
        return self._timeout

    async def read_battery_level(self, *, deadline: float | None = None) -> int | None:
        """Battery percentage, or ``None`` when unsupported or unreadable.

        ``deadline`` is a loop time bounding the read; it defaults to
        ``timeout`` seconds from now.
        """
        if self._battery is None:
            return None
        if deadline is None:
            deadline = asyncio.get_running_loop().time() + self._timeout
        try:
            async with asyncio.timeout_at(deadline):
                level = await self._battery.get_level()
        except Exception:
            _logger.warning("Battery read failed; omitting battery level", exc_info=True)
            return None
        if level is None or not 0.0 <= level <= 1.0:
            _logger.debug("Ignoring out-of-range battery level %r", level)
            return None
        return round_half_up(level * 100)

    async def read(self) -> LocationReading:
        """Read the current location.

        Raises
        ------
        SensorUnavailableError
            No geolocation provider, or the provider could not get a fix.
        SensorPermissionDeniedError
            The provider reported that access was denied.
        SensorTimeoutError
            No fix within ``timeout`` seconds. The battery read shares this
            budget.
        """
        geolocation = self._geolocation
        if geolocation is None:
            raise SensorUnavailableError("Geolocation not supported")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        battery_level = await self.read_battery_level(deadline=deadline)

        try:
            async with asyncio.timeout_at(deadline):
                position = await geolocation.get_current_position(
                    high_accuracy=self._high_accuracy,
                    timeout=max(deadline - loop.time(), 0.0),
                    maximum_age=self._maximum_age,
                )
        except TimeoutError as exc:
            raise SensorTimeoutError(_ERROR_MESSAGES[PositionError.TIMEOUT]) from exc
        except PositionError as exc:
            raise sensor_error_from_code(exc.code) from exc
        except SensorError:
            raise
        except Exception as exc:
            _logger.debug("Geolocation provider failed", exc_info=True)
            raise SensorUnavailableError(f"Location unavailable: {exc}") from exc

        return LocationReading(
            latitude=position.latitude,
            longitude=position.longitude,
            altitude=position.altitude,
            speed=position.speed,
            accuracy=position.accuracy,
            battery_level=battery_level,
        )
