"""Client-side tracking scheduler.

One :class:`TrackingScheduler` keeps one device's location synchronized with
the server: every ``interval`` seconds it reads the sensor and submits the
reading. It is an explicit ``IDLE``/``TRACKING`` state machine owning at most
one timer handle.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pyfieldtrack._constants import DEFAULT_TRACKING_INTERVAL
from pyfieldtrack.exceptions import SensorError, SensorUnavailableError
from pyfieldtrack.models.location import LocationAck, LocationReading
from pyfieldtrack.sensors import SensorAdapter

_logger = logging.getLogger(__name__)

SubmitLocation = Callable[[str, LocationReading], Awaitable[LocationAck]]
UpdateCallback = Callable[[str, LocationReading, LocationAck], None]
ErrorCallback = Callable[[Exception], None]


class TrackingState(enum.StrEnum):
    IDLE = "idle"
    TRACKING = "tracking"


class TrackingScheduler:
    """Periodic read → submit loop for one device.

    Parameters
    ----------
    sensor : SensorAdapter
        Location source.
    submit : callable
        ``await submit(device_id, reading)``; usually
        :meth:`FieldTrackClient.submit_location`.
    device_id : str
        Device to report for. Tracking never starts for an empty id.
    interval : float
        Seconds between ticks.
    on_update : callable or None
        Called with ``(device_id, reading, ack)`` after each accepted tick.
    on_error : callable or None
        Called with the exception of each failed tick.

    Notes
    -----
    Failures never stop the timer; only :meth:`stop_tracking` (or leaving
    ``async with``) does. A tick still running when tracking stops may
    finish, but its result is discarded and it never re-arms the timer.
    """

    def __init__(
        self,
        sensor: SensorAdapter,
        submit: SubmitLocation,
        device_id: str,
        *,
        interval: float = DEFAULT_TRACKING_INTERVAL,
        on_update: UpdateCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._sensor = sensor
        self._submit = submit
        self._device_id = device_id.strip()
        self._interval = interval
        self._on_update = on_update
        self._on_error = on_error

        self._state = TrackingState.IDLE
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self._generation = 0

        self.error: Exception | None = None
        self.current_location: LocationReading | None = None
        self.last_ack: LocationAck | None = None
        self.ticks = 0
        self.skipped_ticks = 0
        self.dropped_points = 0

    async def __aenter__(self) -> TrackingScheduler:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.stop_tracking()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def is_tracking(self) -> bool:
        return self._state is TrackingState.TRACKING

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def has_armed_timer(self) -> bool:
        return self._handle is not None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start_tracking(self) -> None:
        """``IDLE`` → ``TRACKING``: arm the timer and tick once right away.

        No-op while already tracking, for an empty device id, or when the
        sensor has no location capability (the last case records a
        :class:`SensorUnavailableError` in :attr:`error`).
        """
        if self._state is TrackingState.TRACKING:
            _logger.debug("start_tracking ignored: %s already tracking", self._device_id)
            return
        if not self._device_id:
            _logger.warning("start_tracking ignored: no device id")
            return
        if not self._sensor.is_location_supported:
            self._record_error(SensorUnavailableError("Geolocation not supported"))
            return

        self._loop = asyncio.get_running_loop()
        self._generation += 1
        self._state = TrackingState.TRACKING
        _logger.info("Tracking started device=%s interval=%ss", self._device_id, self._interval)
        self._arm(self._generation)
        self._spawn_tick()

    def stop_tracking(self) -> None:
        """``TRACKING`` → ``IDLE``: cancel the timer. Idempotent."""
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()
        if self._state is TrackingState.IDLE:
            return
        self._state = TrackingState.IDLE
        self._generation += 1
        _logger.info("Tracking stopped device=%s", self._device_id)

    async def refresh(self) -> None:
        """Run one tick now, outside the timer cadence.

        Joins the running tick instead when one is in flight.
        """
        if not self._device_id or not self._sensor.is_location_supported:
            return
        if self._tick_task is None or self._tick_task.done():
            self._loop = asyncio.get_running_loop()
            self._spawn_tick()
        await self.wait_until_settled()

    async def wait_until_settled(self) -> None:
        """Wait for the in-flight tick, if any, to finish."""
        task = self._tick_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _arm(self, generation: int) -> None:
        assert self._loop is not None  # noqa: S101
        self._handle = self._loop.call_later(self._interval, self._on_timer, generation)

    def _on_timer(self, generation: int) -> None:
        if generation != self._generation or self._state is not TrackingState.TRACKING:
            return
        self._arm(generation)
        if self._tick_task is not None and not self._tick_task.done():
            self.skipped_ticks += 1
            _logger.debug("Tick skipped device=%s: previous tick still running", self._device_id)
            return
        self._spawn_tick()

    def _spawn_tick(self) -> None:
        assert self._loop is not None  # noqa: S101
        self._tick_task = self._loop.create_task(self._tick(self._generation))

    async def _tick(self, generation: int) -> None:
        try:
            reading = await self._sensor.read()
        except SensorError as exc:
            self._handle_failure(generation, exc)
            return

        try:
            ack = await self._submit(self._device_id, reading)
        except Exception as exc:
            self.dropped_points += 1
            self._handle_failure(generation, exc)
            return

        if generation != self._generation:
            _logger.debug("Discarding result of stale tick device=%s", self._device_id)
            return

        self.error = None
        self.current_location = reading
        self.last_ack = ack
        self.ticks += 1
        if self._on_update is not None:
            try:
                self._on_update(self._device_id, reading, ack)
            except Exception:
                _logger.debug("Tracking update callback failed", exc_info=True)

    def _handle_failure(self, generation: int, exc: Exception) -> None:
        if generation != self._generation:
            _logger.debug("Discarding failure of stale tick device=%s: %s", self._device_id, exc)
            return
        self._record_error(exc)

    def _record_error(self, exc: Exception) -> None:
        self.error = exc
        _logger.warning("Tracking tick failed device=%s: %s", self._device_id or "-", exc)
        if self._on_error is not None:
            try:
                self._on_error(exc)
            except Exception:
                _logger.debug("Tracking error callback failed", exc_info=True)
