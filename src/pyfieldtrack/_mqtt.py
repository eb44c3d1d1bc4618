"""Internal MQTT parsing and runtime helpers for the presence feed."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from pyfieldtrack.config import MqttSettings
from pyfieldtrack.exceptions import FieldTrackConfigError, FieldTrackError


@dataclass(frozen=True)
class FeedMessage:
    """Decoded tracker-data message."""

    topic: str
    payload: dict[str, Any]


def decode_feed_payload(payload: bytes) -> dict[str, Any]:
    """Decode MQTT payload bytes into a JSON object."""
    text = payload.decode("utf-8", errors="replace").strip()
    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise FieldTrackError("MQTT payload is not a JSON object")
    return parsed


def build_client_id() -> str:
    return f"pyfieldtrack_{int(time.time() * 1000)}"


class MqttFeedRuntime:
    """Threaded paho-mqtt runtime that emits decoded messages onto an asyncio loop.

    Every callback into user code is scheduled with
    ``loop.call_soon_threadsafe``; nothing else runs on the network thread.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[FeedMessage], None],
        on_connection_change: Callable[[bool], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._on_connection_change = on_connection_change
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topics: tuple[str, ...] = ()

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    @property
    def topics(self) -> tuple[str, ...]:
        return self._topics

    def _emit_connection(self, connected: bool) -> None:
        if self._on_connection_change is not None:
            self._loop.call_soon_threadsafe(self._on_connection_change, connected)

    def handle_payload(self, topic: str, payload: bytes) -> None:
        """Decode one message and hand it to the loop. Bad payloads are dropped."""
        try:
            parsed = decode_feed_payload(payload)
        except (ValueError, FieldTrackError):
            self._logger.debug("MQTT payload parse failure topic=%s", topic, exc_info=True)
            return
        self._logger.debug("Received PUBLISH topic=%s parsed=%s", topic, parsed)
        self._loop.call_soon_threadsafe(self._on_message, FeedMessage(topic=topic, payload=parsed))

    def start(self, settings: MqttSettings) -> None:
        """Connect and subscribe to the vehicle and operator tracker topics."""
        if not settings.host:
            raise FieldTrackConfigError("MQTT host is not configured")
        self.stop()
        self._topics = tuple(topic for topic in (settings.vehicle_topic, settings.operator_topic) if topic)
        client_id = build_client_id()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topics=%s client_id=%s",
            settings.host,
            settings.port,
            self._topics,
            client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.use_tls:
            client.tls_set()
        client.reconnect_delay_set(min_delay=5, max_delay=60)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            for topic in self._topics:
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=0)
            self._emit_connection(True)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self.handle_payload(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)
            self._emit_connection(False)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topics = ()

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
