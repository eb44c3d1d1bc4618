"""High-level async client for the field tracking API."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import aiohttp

from pyfieldtrack._api import operations as _operations_api
from pyfieldtrack._api import trackers as _trackers_api
from pyfieldtrack._transport import HttpTransport, Transport
from pyfieldtrack.config import FieldTrackConfig
from pyfieldtrack.exceptions import FieldTrackError
from pyfieldtrack.identity import Identity, IdentityProvider
from pyfieldtrack.ingestion.feed import PresenceFeed
from pyfieldtrack.models.location import LocationAck, LocationReading, LocationSample
from pyfieldtrack.models.operation import Operation
from pyfieldtrack.models.requests import DeviceStatusRequest, LocationHistoryRequest, OfflineSweepRequest
from pyfieldtrack.models.tracker import OfflineSweepResult, Tracker
from pyfieldtrack.sensors import BatteryProvider, GeolocationProvider, SensorAdapter
from pyfieldtrack.state.events import TrackerLocation
from pyfieldtrack.state.store import PresenceStore
from pyfieldtrack.tracking.reconciler import AutoResumeReconciler, OpenOperationCallback, ResumePrompt
from pyfieldtrack.tracking.scheduler import ErrorCallback, TrackingScheduler, UpdateCallback
from pyfieldtrack.tracking.sweep import OfflineSweep

_logger = logging.getLogger(__name__)


class FieldTrackClient:
    """Async client for the field tracking API.

    Usage::

        async with FieldTrackClient(config) as client:
            ack = await client.submit_location("GPS-001", reading)

    Parameters
    ----------
    config : FieldTrackConfig
        Client configuration.
    session : aiohttp.ClientSession or None
        Externally owned HTTP session. When omitted the client creates and
        closes its own.
    identity_provider : IdentityProvider or None
        Source of the bearer token. Falls back to ``config.access_token``.
    presence_store : PresenceStore or None
        Store fed by accepted submissions and, when enabled, the broker feed.
        A private store is created when omitted.
    transport : Transport or None
        Transport override, mainly for tests. Skips HTTP session creation.
    """

    def __init__(
        self,
        config: FieldTrackConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        identity_provider: IdentityProvider | None = None,
        presence_store: PresenceStore | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._identity_provider = identity_provider
        self._transport_override = transport
        self._transport: Transport | None = None
        self._presence = presence_store if presence_store is not None else PresenceStore()
        self._feed: PresenceFeed | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FieldTrackClient:
        if self._transport_override is not None:
            self._transport = self._transport_override
        else:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(
                self._config,
                self._http_session,
                token_getter=self._current_token if self._identity_provider is not None else None,
            )
        await self._ensure_feed_started()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self._stop_feed()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None

    @property
    def config(self) -> FieldTrackConfig:
        return self._config

    @property
    def presence(self) -> PresenceStore:
        return self._presence

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise FieldTrackError("Client not initialized. Use 'async with FieldTrackClient(...) as client:'")
        return self._transport

    def _current_token(self) -> str | None:
        provider = self._identity_provider
        identity = provider.current_identity() if provider is not None else None
        if identity is not None and identity.access_token:
            return identity.access_token
        return self._config.access_token

    async def _ensure_feed_started(self) -> None:
        """Best-effort broker startup (failures must not break REST flow)."""
        if not self._config.mqtt_enabled:
            return
        if self._feed is not None and self._feed.is_running:
            return
        feed = PresenceFeed(self._presence, self._config.mqtt)
        if await feed.start():
            self._feed = feed

    def _stop_feed(self) -> None:
        feed = self._feed
        self._feed = None
        if feed is not None:
            feed.stop()

    # ------------------------------------------------------------------
    # Tracker ingestion
    # ------------------------------------------------------------------

    async def submit_location(self, device_id: str, reading: LocationReading) -> LocationAck:
        """Submit one location reading for a device.

        Parameters
        ----------
        device_id : str
            The tracker's device id.
        reading : LocationReading
            Sensor reading. Its local timestamp is never sent.

        Returns
        -------
        LocationAck
            Server receipt. The accepted location is also applied to
            :attr:`presence`, keyed by the server tracker id when known.

        Raises
        ------
        FieldTrackValidationError
            Rejected client-side or by the server.
        FieldTrackNetworkError
            Transport failure or timeout.
        """
        ack = await _trackers_api.submit_location(self._require_transport(), device_id, reading)
        tracker_key = ack.tracker_id or device_id.strip()
        location_data: dict[str, Any] = {
            "latitude": reading.latitude,
            "longitude": reading.longitude,
            "speed": reading.speed or 0.0,
            "altitude": reading.altitude,
        }
        if ack.timestamp is not None:
            location_data["timestamp"] = ack.timestamp
        self._presence.apply_location_update(tracker_key, TrackerLocation(**location_data))
        if reading.battery_level is not None:
            self._presence.apply_status_update(tracker_key, {"battery": reading.battery_level})
        return ack

    async def update_device_status(
        self,
        device_id: str,
        *,
        is_online: bool | None = None,
        last_seen: datetime | None = None,
    ) -> Tracker:
        request = DeviceStatusRequest(device_id=device_id, is_online=is_online, last_seen=last_seen)
        return await _trackers_api.update_device_status(self._require_transport(), request)

    # ------------------------------------------------------------------
    # Tracker reads
    # ------------------------------------------------------------------

    async def get_tracker(self, tracker_id: str) -> Tracker:
        return await _trackers_api.fetch_tracker(self._require_transport(), tracker_id)

    async def get_tracker_by_device_id(self, device_id: str) -> Tracker:
        return await _trackers_api.fetch_tracker_by_device_id(self._require_transport(), device_id)

    async def get_current_location(self, tracker_id: str) -> LocationSample | None:
        """Most recent stored sample, or ``None`` when the tracker has none."""
        return await _trackers_api.fetch_current_location(self._require_transport(), tracker_id)

    async def get_location_history(
        self,
        tracker_id: str,
        *,
        limit: int | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[LocationSample]:
        """Stored samples for a tracker, newest first.

        Raises
        ------
        pydantic.ValidationError
            ``limit`` outside 1-1000, or an empty/inverted/over-long date range.
        """
        request = LocationHistoryRequest(
            tracker_id=tracker_id,
            limit=limit,
            start_date=start_date,
            end_date=end_date,
        )
        return await _trackers_api.fetch_location_history(self._require_transport(), request)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get_today_operations_by_operator(self, operator_id: str) -> list[Operation]:
        return await _operations_api.fetch_today_operations_by_operator(self._require_transport(), operator_id)

    async def get_active_operation(self, operator_id: str) -> Operation | None:
        """Today's active operation for an operator, if any."""
        operations = await self.get_today_operations_by_operator(operator_id)
        return _operations_api.find_active_operation(operations)

    # ------------------------------------------------------------------
    # Offline sweep
    # ------------------------------------------------------------------

    async def mark_offline_trackers(self, timeout_minutes: int | None = None) -> OfflineSweepResult:
        """Trigger the server-side sweep of trackers silent for ``timeout_minutes``."""
        minutes = timeout_minutes if timeout_minutes is not None else self._config.offline_timeout_minutes
        request = OfflineSweepRequest(timeout_minutes=minutes)
        result = await _trackers_api.mark_offline_trackers(self._require_transport(), request)
        _logger.info("Offline sweep marked %d tracker(s) offline", result.marked_offline)
        return result

    # ------------------------------------------------------------------
    # Tracking helpers (configured from ``config``)
    # ------------------------------------------------------------------

    def create_sensor(
        self,
        geolocation: GeolocationProvider | None,
        battery: BatteryProvider | None = None,
    ) -> SensorAdapter:
        return SensorAdapter(geolocation, battery, timeout=self._config.sensor_timeout)

    def create_scheduler(
        self,
        sensor: SensorAdapter,
        device_id: str,
        *,
        interval: float | None = None,
        on_update: UpdateCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> TrackingScheduler:
        """Build a scheduler submitting through this client."""
        return TrackingScheduler(
            sensor,
            self.submit_location,
            device_id,
            interval=interval if interval is not None else self._config.tracking_interval,
            on_update=on_update,
            on_error=on_error,
        )

    def create_reconciler(
        self,
        identity: Identity | None,
        prompt: ResumePrompt,
        sensor: SensorAdapter,
        *,
        on_open_operation: OpenOperationCallback | None = None,
    ) -> AutoResumeReconciler:
        """Build an auto-resume reconciler whose resumed sessions use ``sensor``."""
        return AutoResumeReconciler(
            self.get_active_operation,
            identity,
            prompt,
            lambda device_id, interval: self.create_scheduler(sensor, device_id, interval=interval),
            on_open_operation=on_open_operation,
            poll_interval=self._config.active_operation_poll_interval,
            settle_delay=self._config.resume_settle_delay,
            default_interval=self._config.tracking_interval,
        )

    def create_offline_sweep(self) -> OfflineSweep:
        return OfflineSweep(self.mark_offline_trackers, interval=self._config.sweep_interval)
