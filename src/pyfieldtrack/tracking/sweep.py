"""Periodic trigger for the server-side offline sweep."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pyfieldtrack.models.tracker import OfflineSweepResult

_logger = logging.getLogger(__name__)

SweepTrigger = Callable[[], Awaitable[OfflineSweepResult]]


class OfflineSweep:
    """Run ``trigger`` every ``interval`` seconds until stopped.

    The server decides which trackers are stale and flips them offline; this
    job only keeps the cadence. Failures are logged and the job carries on.
    """

    def __init__(self, trigger: SweepTrigger, *, interval: float = 300.0) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._trigger = trigger
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self.runs = 0
        self.failures = 0
        self.last_result: OfflineSweepResult | None = None
        self.last_error: Exception | None = None

    async def __aenter__(self) -> OfflineSweep:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def run_once(self) -> OfflineSweepResult | None:
        """Trigger one sweep. Returns ``None`` when it failed."""
        self.runs += 1
        try:
            result = await self._trigger()
        except Exception as exc:
            self.failures += 1
            self.last_error = exc
            _logger.warning("Offline sweep failed: %s", exc)
            return None
        self.last_error = None
        self.last_result = result
        return result

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)
