"""In-memory presence store.

This is the only component allowed to mutate tracker presence. It is owned
by one event loop and is not thread-safe; broker threads must hand events
over with ``loop.call_soon_threadsafe``.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from pyfieldtrack._constants import ACTIVITY_LOG_SIZE
from pyfieldtrack.state.events import (
    PresenceEvent,
    PresenceEventKind,
    PresenceStatus,
    TrackerAlarm,
    TrackerLocation,
    TrackerStatusData,
)
from pyfieldtrack.state.policy import Widgets, compute_widgets, next_status

_logger = logging.getLogger(__name__)

PresenceListener = Callable[["PresenceStore"], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PresenceEntry(BaseModel):
    """The store's belief about one tracker. Never persisted."""

    model_config = ConfigDict(extra="forbid")

    tracker_id: str
    name: str | None = None
    status: PresenceStatus = PresenceStatus.IDLE
    location: TrackerLocation | None = None
    status_data: TrackerStatusData | None = None
    last_alarm: TrackerAlarm | None = None
    last_update: datetime
    is_active: bool = True

    @property
    def battery(self) -> float | None:
        return self.status_data.battery if self.status_data is not None else None


class PresenceStore:
    """Tracker id → presence entry map plus derived widgets and activity log.

    Mutations are last-write-wins per tracker id and are applied in call
    order. Offline status only ever comes from :meth:`mark_offline`; the
    store never infers it from elapsed time.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        activity_size: int = ACTIVITY_LOG_SIZE,
    ) -> None:
        self._clock = clock
        self._trackers: dict[str, PresenceEntry] = {}
        self._activity: deque[str] = deque(maxlen=activity_size)
        self._widgets = Widgets()
        self._selected: str | None = None
        self._broker_connected = False
        self._listeners: list[PresenceListener] = []

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def apply_location_update(self, tracker_id: str, location: TrackerLocation) -> PresenceEntry:
        """Record an accepted location; the tracker becomes online."""
        now = self._clock()
        entry = self._upsert(tracker_id, now, PresenceEventKind.LOCATION)
        entry.location = location
        entry.is_active = True
        self.add_activity(f"Tracker {tracker_id} location updated", notify=False)
        return self._after_mutation(entry)

    def apply_status_update(
        self,
        tracker_id: str,
        payload: TrackerStatusData | Mapping[str, Any],
    ) -> PresenceEntry:
        """Merge device health fields without touching the presence status."""
        patch = payload if isinstance(payload, TrackerStatusData) else TrackerStatusData.model_validate(payload)
        now = self._clock()
        entry = self._upsert(tracker_id, now, PresenceEventKind.STATUS)
        entry.status_data = patch if entry.status_data is None else entry.status_data.merged_with(patch)
        return self._after_mutation(entry)

    def mark_offline(self, tracker_id: str) -> PresenceEntry | None:
        """Flip a known tracker offline. Unknown ids are ignored."""
        entry = self._trackers.get(tracker_id)
        if entry is None:
            _logger.debug("mark_offline ignored for unknown tracker %s", tracker_id)
            return None
        entry.status = next_status(entry.status, PresenceEventKind.OFFLINE)
        entry.is_active = False
        entry.last_update = self._clock()
        self.add_activity(f"Tracker {tracker_id} went offline", notify=False)
        return self._after_mutation(entry)

    def raise_alarm(self, tracker_id: str, alarm: TrackerAlarm) -> PresenceEntry:
        """Put a tracker in alarm, whatever its previous status."""
        now = self._clock()
        entry = self._upsert(tracker_id, now, PresenceEventKind.ALARM)
        entry.last_alarm = alarm
        _logger.warning("Tracker %s alarm %s: %s", tracker_id, alarm.alarm_type, alarm.message)
        self.add_activity(f"ALARM: Tracker {tracker_id} - {alarm.message}", notify=False)
        return self._after_mutation(entry)

    def add_tracker(self, entry: PresenceEntry) -> PresenceEntry:
        """Register a tracker explicitly, replacing any existing entry."""
        stored = entry.model_copy(deep=True)
        self._trackers[stored.tracker_id] = stored
        self.add_activity(f"Tracker {stored.tracker_id} added", notify=False)
        return self._after_mutation(stored)

    def remove_tracker(self, tracker_id: str) -> PresenceEntry | None:
        removed = self._trackers.pop(tracker_id, None)
        if removed is None:
            return None
        if self._selected == tracker_id:
            self._selected = None
        self.add_activity(f"Tracker {tracker_id} removed", notify=False)
        self._recompute_widgets()
        self._notify()
        return removed

    def set_tracker_name(self, tracker_id: str, name: str) -> None:
        entry = self._trackers.get(tracker_id)
        if entry is None:
            return
        entry.name = name
        self._notify()

    def apply(self, event: PresenceEvent) -> PresenceEntry | None:
        """Apply a normalized presence event."""
        if event.kind == PresenceEventKind.LOCATION and event.location is not None:
            result = self.apply_location_update(event.tracker_id, event.location)
        elif event.kind == PresenceEventKind.STATUS and event.status is not None:
            result = self.apply_status_update(event.tracker_id, event.status)
        elif event.kind == PresenceEventKind.ALARM and event.alarm is not None:
            result = self.raise_alarm(event.tracker_id, event.alarm)
        elif event.kind == PresenceEventKind.OFFLINE:
            result = self.mark_offline(event.tracker_id)
        elif event.kind == PresenceEventKind.REMOVED:
            result = self.remove_tracker(event.tracker_id)
        elif event.kind == PresenceEventKind.ADDED:
            result = self.add_tracker(
                PresenceEntry(
                    tracker_id=event.tracker_id,
                    name=event.name,
                    location=event.location,
                    status_data=event.status,
                    last_update=self._clock(),
                )
            )
        else:
            return None

        if event.name and event.kind != PresenceEventKind.ADDED:
            self.set_tracker_name(event.tracker_id, event.name)
        return result

    def set_broker_connected(self, connected: bool) -> None:
        if connected == self._broker_connected:
            return
        self._broker_connected = connected
        self._notify()

    def select(self, tracker_id: str | None) -> None:
        self._selected = tracker_id
        self._notify()

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def add_activity(self, message: str, *, notify: bool = True) -> None:
        """Prepend a timestamped line; the oldest line drops past the limit."""
        self._activity.appendleft(f"{self._clock():%H:%M:%S} - {message}")
        if notify:
            self._notify()

    def clear_activity(self) -> None:
        self._activity.clear()
        self._notify()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def widgets(self) -> Widgets:
        return self._widgets

    @property
    def activity(self) -> list[str]:
        """Activity lines, newest first."""
        return list(self._activity)

    @property
    def broker_connected(self) -> bool:
        return self._broker_connected

    @property
    def selected(self) -> PresenceEntry | None:
        if self._selected is None:
            return None
        return self.get(self._selected)

    def get(self, tracker_id: str) -> PresenceEntry | None:
        entry = self._trackers.get(tracker_id)
        return entry.model_copy(deep=True) if entry is not None else None

    def __contains__(self, tracker_id: object) -> bool:
        return tracker_id in self._trackers

    def __len__(self) -> int:
        return len(self._trackers)

    def all_trackers(self) -> list[PresenceEntry]:
        return [entry.model_copy(deep=True) for entry in self._trackers.values()]

    def trackers_with_status(self, status: PresenceStatus) -> list[PresenceEntry]:
        return [entry.model_copy(deep=True) for entry in self._trackers.values() if entry.status == status]

    def online_trackers(self) -> list[PresenceEntry]:
        return self.trackers_with_status(PresenceStatus.ONLINE)

    def offline_trackers(self) -> list[PresenceEntry]:
        return self.trackers_with_status(PresenceStatus.OFFLINE)

    def alarmed_trackers(self) -> list[PresenceEntry]:
        return self.trackers_with_status(PresenceStatus.ALARM)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: PresenceListener) -> Callable[[], None]:
        """Call *listener* after every mutation. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _upsert(self, tracker_id: str, now: datetime, kind: PresenceEventKind) -> PresenceEntry:
        entry = self._trackers.get(tracker_id)
        if entry is None:
            entry = PresenceEntry(
                tracker_id=tracker_id,
                status=next_status(None, kind),
                last_update=now,
            )
            self._trackers[tracker_id] = entry
        else:
            entry.status = next_status(entry.status, kind)
            entry.last_update = now
        return entry

    def _after_mutation(self, entry: PresenceEntry) -> PresenceEntry:
        self._recompute_widgets()
        self._notify()
        return entry.model_copy(deep=True)

    def _recompute_widgets(self) -> None:
        self._widgets = compute_widgets((entry.status, entry.battery) for entry in self._trackers.values())

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                _logger.debug("Presence listener failed", exc_info=True)
