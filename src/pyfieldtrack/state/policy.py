"""Deterministic presence rules.

This module intentionally contains *no* payload parsing. It answers two
questions: which status does an entry take after an event, and what do the
dashboard widgets read for a given set of entries.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from pyfieldtrack.ingestion.normalize import round_half_up
from pyfieldtrack.state.events import PresenceEventKind, PresenceStatus


class Widgets(BaseModel):
    """Aggregated counters shown on the dashboard."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    online: int = 0
    offline: int = 0
    active_alarms: int = 0
    avg_battery: int = 0


def next_status(current: PresenceStatus | None, kind: PresenceEventKind) -> PresenceStatus:
    """Status of an entry after an event of *kind*.

    - location updates force ``online``
    - alarms pre-empt any previous status
    - offline only through an explicit offline event
    - status-only updates keep the current status; a tracker first seen
      through one is ``idle`` until a location arrives
    """
    if kind == PresenceEventKind.LOCATION:
        return PresenceStatus.ONLINE
    if kind == PresenceEventKind.ALARM:
        return PresenceStatus.ALARM
    if kind == PresenceEventKind.OFFLINE:
        return PresenceStatus.OFFLINE
    return current if current is not None else PresenceStatus.IDLE


def compute_widgets(statuses_and_batteries: Iterable[tuple[PresenceStatus, float | None]]) -> Widgets:
    """Recompute widgets in one pass.

    ``avg_battery`` averages only entries that report a battery level;
    entries without one are excluded rather than counted as zero.
    """
    total = online = offline = alarms = 0
    battery_sum = 0.0
    battery_count = 0
    for status, battery in statuses_and_batteries:
        total += 1
        if status == PresenceStatus.ONLINE:
            online += 1
        elif status == PresenceStatus.OFFLINE:
            offline += 1
        elif status == PresenceStatus.ALARM:
            alarms += 1
        if battery is not None:
            battery_sum += battery
            battery_count += 1

    avg_battery = round_half_up(battery_sum / battery_count) if battery_count else 0
    return Widgets(
        total=total,
        online=online,
        offline=offline,
        active_alarms=alarms,
        avg_battery=avg_battery,
    )
