from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

import aiohttp
import pytest

from pyfieldtrack._transport import HttpTransport
from pyfieldtrack.client import FieldTrackClient
from pyfieldtrack.config import FieldTrackConfig
from pyfieldtrack.exceptions import FieldTrackError, FieldTrackNotFoundError, FieldTrackValidationError
from pyfieldtrack.identity import Identity, StaticIdentityProvider
from pyfieldtrack.sensors import SensorAdapter, StaticBatteryProvider, StaticGeolocationProvider
from pyfieldtrack.state.events import PresenceStatus
from pyfieldtrack.tracking.reconciler import ResumeChoice
from pyfieldtrack.tracking.scheduler import TrackingScheduler


@dataclass
class FakeFieldTrackBackend:
    device_id: str = "D1"
    tracker_id: str = "trk-1"
    calls: dict[str, int] = field(default_factory=dict)
    samples: list[dict[str, Any]] = field(default_factory=list)
    is_online: bool = False
    bodies: list[dict[str, Any]] = field(default_factory=list)

    def _record_call(self, method: str, endpoint: str) -> None:
        key = f"{method} {endpoint}"
        self.calls[key] = self.calls.get(key, 0) + 1

    def _tracker(self) -> dict[str, Any]:
        return {
            "id": self.tracker_id,
            "deviceId": self.device_id,
            "name": "Tractor 4",
            "status": "active",
            "isOnline": self.is_online,
            "lastSeen": "2026-03-01T08:30:00Z" if self.samples else None,
            "refreshInterval": 20,
            "refreshUnit": "s",
        }

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        self._record_call(method, endpoint)

        if method == "POST" and endpoint == "/trackers/device/location":
            body = dict(json_body or {})
            self.bodies.append(body)
            if body.get("deviceId") != self.device_id:
                raise FieldTrackNotFoundError("HTTP 404: Tracker not found", status_code=404, endpoint=endpoint)
            self.samples.insert(
                0,
                {
                    "trackerId": self.tracker_id,
                    "location": {"lat": body["latitude"], "lng": body["longitude"]},
                    "batteryLevel": body.get("batteryLevel"),
                    "timestamp": "2026-03-01T08:30:00Z",
                },
            )
            self.is_online = True
            return {"data": self._tracker(), "message": "Location updated successfully"}

        if method == "GET" and endpoint == f"/trackers/{self.tracker_id}":
            return {"data": self._tracker()}

        if method == "GET" and endpoint == f"/trackers/device/{self.device_id}":
            return {"data": self._tracker()}

        if method == "GET" and endpoint == f"/trackers/{self.tracker_id}/location/current":
            return {"data": self.samples[0] if self.samples else None}

        if method == "GET" and endpoint == f"/trackers/{self.tracker_id}/location/history":
            limit = int((params or {}).get("limit", "100"))
            return {"data": self.samples[:limit]}

        if method == "GET" and endpoint == "/operations/today/operator/user-1":
            return {
                "data": [
                    {"id": "op-0", "status": "completed", "operator": {"userId": "user-1"}},
                    {
                        "id": "op-1",
                        "status": "active",
                        "operationType": "harvest",
                        "operator": {"userId": "user-1"},
                        "tracker": {"deviceId": self.device_id, "refreshInterval": 20, "refreshUnit": "s"},
                    },
                ]
            }

        if method == "PUT" and endpoint == "/trackers/offline/mark":
            self.is_online = False
            return {"data": {"markedOffline": 1, "cutoffTime": "2026-03-01T08:00:00Z"}}

        raise AssertionError(f"Unexpected endpoint in fake backend: {method} {endpoint}")


@pytest.fixture
def config() -> FieldTrackConfig:
    return FieldTrackConfig(base_url="https://fleet.example.com/api", access_token="static-token")


@pytest.fixture
def backend(monkeypatch: pytest.MonkeyPatch) -> FakeFieldTrackBackend:
    fake_backend = FakeFieldTrackBackend()

    async def fake_request(_self: Any, method: str, endpoint: str, **kwargs: Any) -> Any:
        return await fake_backend.request(method, endpoint, **kwargs)

    monkeypatch.setattr("pyfieldtrack._transport.HttpTransport.request", fake_request)
    return fake_backend


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_tracking_session_updates_server_and_presence(
    config: FieldTrackConfig, backend: FakeFieldTrackBackend
) -> None:
    sensor = SensorAdapter(StaticGeolocationProvider(33.57, -7.59), StaticBatteryProvider(0.5))

    async with FieldTrackClient(config) as client:
        tracker = await client.get_tracker_by_device_id("D1")
        assert tracker.is_online is False

        async with TrackingScheduler(
            sensor, client.submit_location, tracker.device_id, interval=tracker.refresh_interval_seconds()
        ) as scheduler:
            assert scheduler.interval == 20.0
            scheduler.start_tracking()
            await scheduler.wait_until_settled()
            await scheduler.refresh()
            assert scheduler.is_error is False
            assert scheduler.last_ack is not None
            assert scheduler.last_ack.tracker_id == "trk-1"

        tracker = await client.get_tracker("trk-1")
        assert tracker.is_online is True
        assert tracker.last_seen is not None

        current = await client.get_current_location("trk-1")
        assert current is not None
        assert current.latitude == pytest.approx(33.57)

        history = await client.get_location_history("trk-1", limit=1)
        assert len(history) == 1

        presence = client.presence.get("trk-1")
        assert presence is not None
        assert presence.status == PresenceStatus.ONLINE
        assert presence.battery == 50
        assert client.presence.widgets.avg_battery == 50

        result = await client.mark_offline_trackers()
        assert result.marked_offline == 1

    assert backend.calls["POST /trackers/device/location"] == 2
    assert all("timestamp" not in body for body in backend.bodies)


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_unknown_device_is_rejected(config: FieldTrackConfig, backend: FakeFieldTrackBackend) -> None:
    sensor = SensorAdapter(StaticGeolocationProvider(33.57, -7.59))

    async with FieldTrackClient(config) as client:
        scheduler = TrackingScheduler(sensor, client.submit_location, "D-unknown", interval=10.0)
        scheduler.start_tracking()
        await scheduler.wait_until_settled()

        assert isinstance(scheduler.error, FieldTrackValidationError)
        assert scheduler.dropped_points == 1
        assert scheduler.has_armed_timer is True
        scheduler.stop_tracking()

        assert len(client.presence) == 0


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_auto_resume_and_sweep(config: FieldTrackConfig, backend: FakeFieldTrackBackend) -> None:
    config = replace(config, resume_settle_delay=0.0)
    identity = Identity(user_id="user-1", roles=frozenset({"operator"}), access_token="user-token")
    opened: list[str] = []

    async def prompt(_operation: Any, can_track: bool) -> ResumeChoice:
        assert can_track is True
        return ResumeChoice.RESUME

    async with FieldTrackClient(config, identity_provider=StaticIdentityProvider(identity)) as client:
        reconciler = client.create_reconciler(
            identity,
            prompt,
            client.create_sensor(StaticGeolocationProvider(33.57, -7.59)),
            on_open_operation=lambda operation: opened.append(operation.id),
        )
        operation = await reconciler.poll_once()
        assert operation is not None
        assert operation.id == "op-1"
        await reconciler.wait_until_settled()
        await reconciler.stop()

        scheduler = reconciler.scheduler
        assert scheduler is not None
        await scheduler.wait_until_settled()
        assert scheduler.is_tracking is True
        assert scheduler.interval == 20.0
        scheduler.stop_tracking()

        sweep = client.create_offline_sweep()
        result = await sweep.run_once()
        assert result is not None
        assert result.marked_offline == 1

    assert opened == ["op-1"]
    assert backend.calls["POST /trackers/device/location"] == 1
    assert backend.is_online is False


@pytest.mark.asyncio
async def test_client_requires_context_manager(config: FieldTrackConfig) -> None:
    client = FieldTrackClient(config)
    with pytest.raises(FieldTrackError):
        await client.get_tracker("trk-1")


@pytest.mark.asyncio
async def test_http_transport_uses_identity_token(config: FieldTrackConfig) -> None:
    identity = Identity(user_id="user-1", roles=frozenset({"operator"}), access_token="user-token")
    client = FieldTrackClient(config, identity_provider=StaticIdentityProvider(identity))

    async with aiohttp.ClientSession() as session:
        with_identity = HttpTransport(config, session, token_getter=client._current_token)
        assert with_identity._build_headers()["authorization"] == "Bearer user-token"

        static = HttpTransport(config, session)
        assert static._build_headers()["authorization"] == "Bearer static-token"


def test_client_factories_use_config() -> None:
    config = FieldTrackConfig(tracking_interval=45.0, sensor_timeout=3.0, sweep_interval=120.0)
    client = FieldTrackClient(config)

    sensor = client.create_sensor(StaticGeolocationProvider(33.57, -7.59))
    assert sensor.timeout == 3.0
    assert client.create_scheduler(sensor, "D1").interval == 45.0
    assert client.create_scheduler(sensor, "D1", interval=10.0).interval == 10.0
    assert client.create_offline_sweep().is_running is False
