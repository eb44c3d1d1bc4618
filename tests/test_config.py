from __future__ import annotations

import pytest

from pyfieldtrack.config import FieldTrackConfig, MqttSettings
from pyfieldtrack.exceptions import FieldTrackConfigError


def test_defaults() -> None:
    config = FieldTrackConfig()
    assert config.tracking_interval == 30.0
    assert config.sensor_timeout == 10.0
    assert config.active_operation_poll_interval == 60.0
    assert config.resume_settle_delay == 1.0
    assert config.mqtt_enabled is False
    assert config.mqtt.host is None


def test_api_url_strips_trailing_slash() -> None:
    assert FieldTrackConfig(base_url="https://fleet.example.com/api/").api_url == "https://fleet.example.com/api"


def test_from_env_reads_fieldtrack_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FIELDTRACK_BASE_URL", "https://fleet.example.com/api")
    monkeypatch.setenv("FIELDTRACK_ACCESS_TOKEN", "tok")
    monkeypatch.setenv("FIELDTRACK_TRACKING_INTERVAL", "10")
    monkeypatch.setenv("FIELDTRACK_OFFLINE_TIMEOUT_MINUTES", "15")
    monkeypatch.setenv("FIELDTRACK_MQTT_ENABLED", "yes")
    monkeypatch.setenv("FIELDTRACK_MQTT_HOST", "broker.local")
    monkeypatch.setenv("FIELDTRACK_MQTT_PORT", "8883")
    monkeypatch.setenv("FIELDTRACK_MQTT_TLS", "true")

    config = FieldTrackConfig.from_env()

    assert config.api_url == "https://fleet.example.com/api"
    assert config.access_token == "tok"
    assert config.tracking_interval == 10.0
    assert config.offline_timeout_minutes == 15
    assert config.mqtt_enabled is True
    assert config.mqtt.host == "broker.local"
    assert config.mqtt.port == 8883
    assert config.mqtt.use_tls is True


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FIELDTRACK_TRACKING_INTERVAL", "10")
    monkeypatch.setenv("FIELDTRACK_MQTT_HOST", "broker.local")

    config = FieldTrackConfig.from_env(tracking_interval=5.0, mqtt=MqttSettings(host="other.local"))

    assert config.tracking_interval == 5.0
    assert config.mqtt.host == "other.local"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"base_url": "  "},
        {"tracking_interval": 0},
        {"sensor_timeout": -1},
        {"offline_timeout_minutes": 0},
    ],
)
def test_invalid_values_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(FieldTrackConfigError):
        FieldTrackConfig(**kwargs)  # type: ignore[arg-type]
