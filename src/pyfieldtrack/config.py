"""Client configuration for pyfieldtrack."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyfieldtrack._constants import (
    BASE_URL,
    DEFAULT_ACTIVE_OPERATION_POLL_INTERVAL,
    DEFAULT_OFFLINE_TIMEOUT_MINUTES,
    DEFAULT_RESUME_SETTLE_DELAY,
    DEFAULT_SENSOR_TIMEOUT,
    DEFAULT_TRACKING_INTERVAL,
)
from pyfieldtrack.exceptions import FieldTrackConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker settings for the presence feed.

    The feed is optional; with ``host`` unset the client never connects.
    """

    host: str | None = None
    port: int = 1883
    username: str | None = None
    password: str | None = None
    use_tls: bool = False
    keepalive: int = 30
    vehicle_topic: str = "trackers/vehicles/data"
    operator_topic: str = "trackers/operators/data"


@dataclasses.dataclass(frozen=True)
class FieldTrackConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        API base URL, including any ``/api`` prefix.
    access_token : str or None
        Static bearer token. Ignored when an identity provider is passed
        to the client.
    tracking_interval : float
        Default seconds between tracking ticks when a tracker has no
        refresh interval of its own.
    sensor_timeout : float
        Hard upper bound in seconds for a single sensor read.
    request_timeout : float
        Total aiohttp timeout in seconds for one HTTP request.
    active_operation_poll_interval : float
        Seconds between active-operation polls of the resume reconciler.
    resume_settle_delay : float
        Seconds to wait before showing the resume prompt.
    offline_timeout_minutes : int
        Threshold passed to the server-side offline sweep.
    sweep_interval : float
        Seconds between offline sweep triggers.
    mqtt_enabled : bool
        Enable the broker presence feed.
    api_trace_enabled : bool
        Log redacted request/response bodies at DEBUG level.
    mqtt : MqttSettings
        Broker settings.
    """

    base_url: str = BASE_URL
    access_token: str | None = None
    tracking_interval: float = DEFAULT_TRACKING_INTERVAL
    sensor_timeout: float = DEFAULT_SENSOR_TIMEOUT
    request_timeout: float = 15.0
    active_operation_poll_interval: float = DEFAULT_ACTIVE_OPERATION_POLL_INTERVAL
    resume_settle_delay: float = DEFAULT_RESUME_SETTLE_DELAY
    offline_timeout_minutes: int = DEFAULT_OFFLINE_TIMEOUT_MINUTES
    sweep_interval: float = 300.0
    mqtt_enabled: bool = False
    api_trace_enabled: bool = False
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if not self.base_url.strip():
            raise FieldTrackConfigError("base_url must be non-empty")
        if self.tracking_interval <= 0:
            raise FieldTrackConfigError(f"tracking_interval must be positive, got {self.tracking_interval}")
        if self.sensor_timeout <= 0:
            raise FieldTrackConfigError(f"sensor_timeout must be positive, got {self.sensor_timeout}")
        if self.offline_timeout_minutes < 1:
            raise FieldTrackConfigError(
                f"offline_timeout_minutes must be at least 1, got {self.offline_timeout_minutes}"
            )

    @property
    def api_url(self) -> str:
        return self.base_url.rstrip("/")

    @classmethod
    def from_env(cls, **overrides: Any) -> FieldTrackConfig:
        """Create configuration from ``FIELDTRACK_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "FIELDTRACK_MQTT_HOST": "host",
            "FIELDTRACK_MQTT_USERNAME": "username",
            "FIELDTRACK_MQTT_PASSWORD": "password",
            "FIELDTRACK_MQTT_VEHICLE_TOPIC": "vehicle_topic",
            "FIELDTRACK_MQTT_OPERATOR_TOPIC": "operator_topic",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val
        port_env = env.get("FIELDTRACK_MQTT_PORT")
        if port_env is not None:
            mqtt_kwargs["port"] = int(port_env)
        tls_env = env.get("FIELDTRACK_MQTT_TLS")
        if tls_env is not None:
            mqtt_kwargs["use_tls"] = _env_bool(tls_env, False)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}

        base_url = env.get("FIELDTRACK_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url
        token = env.get("FIELDTRACK_ACCESS_TOKEN")
        if token is not None:
            config_kwargs["access_token"] = token

        _ENV_FLOAT_MAP = {
            "FIELDTRACK_TRACKING_INTERVAL": "tracking_interval",
            "FIELDTRACK_SENSOR_TIMEOUT": "sensor_timeout",
            "FIELDTRACK_REQUEST_TIMEOUT": "request_timeout",
            "FIELDTRACK_ACTIVE_OPERATION_POLL_INTERVAL": "active_operation_poll_interval",
            "FIELDTRACK_RESUME_SETTLE_DELAY": "resume_settle_delay",
            "FIELDTRACK_SWEEP_INTERVAL": "sweep_interval",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)

        offline_env = env.get("FIELDTRACK_OFFLINE_TIMEOUT_MINUTES")
        if offline_env is not None and "offline_timeout_minutes" not in overrides:
            config_kwargs["offline_timeout_minutes"] = int(offline_env)

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("FIELDTRACK_MQTT_ENABLED"), False)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("FIELDTRACK_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
