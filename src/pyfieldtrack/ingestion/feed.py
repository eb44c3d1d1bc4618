"""Presence feed: broker messages into the presence store."""

from __future__ import annotations

import asyncio
import logging

from pyfieldtrack._mqtt import FeedMessage, MqttFeedRuntime
from pyfieldtrack.config import MqttSettings
from pyfieldtrack.ingestion.presence import build_presence_events
from pyfieldtrack.state.store import PresenceStore

_logger = logging.getLogger(__name__)


class PresenceFeed:
    """Applies tracker-data broker messages to a :class:`PresenceStore`.

    Usage::

        feed = PresenceFeed(store, config.mqtt)
        await feed.start()
        ...
        feed.stop()

    ``start`` is best-effort: a broker that cannot be reached is logged and
    leaves ``store.broker_connected`` false; HTTP-driven presence keeps
    working.
    """

    def __init__(
        self,
        store: PresenceStore,
        settings: MqttSettings,
        *,
        runtime_factory: type[MqttFeedRuntime] = MqttFeedRuntime,
    ) -> None:
        self._store = store
        self._settings = settings
        self._runtime_factory = runtime_factory
        self._runtime: MqttFeedRuntime | None = None
        self.events_applied = 0

    @property
    def is_running(self) -> bool:
        return self._runtime is not None and self._runtime.is_running

    async def start(self) -> bool:
        """Connect to the broker. Returns whether the runtime started."""
        if self.is_running:
            return True
        if not self._settings.host:
            _logger.debug("Presence feed disabled: no MQTT host configured")
            return False
        runtime = self._runtime_factory(
            loop=asyncio.get_running_loop(),
            on_message=self.handle_message,
            on_connection_change=self._store.set_broker_connected,
            logger=_logger,
        )
        try:
            runtime.start(self._settings)
        except Exception:
            _logger.warning("Presence feed startup failed", exc_info=True)
            runtime.stop()
            self._store.set_broker_connected(False)
            return False
        self._runtime = runtime
        _logger.info("Presence feed started host=%s topics=%s", self._settings.host, runtime.topics)
        return True

    def stop(self) -> None:
        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            runtime.stop()
        self._store.set_broker_connected(False)

    def handle_message(self, message: FeedMessage) -> None:
        """Apply one decoded message. Runs on the event loop."""
        for event in build_presence_events(message.payload, topic=message.topic):
            self._store.apply(event)
            self.events_applied += 1
