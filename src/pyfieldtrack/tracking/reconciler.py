"""Auto-resume of interrupted tracking sessions.

When an operator comes back while one of today's operations is still
active, the reconciler offers, once per session, to resume tracking the
operation's device.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pyfieldtrack._constants import (
    DEFAULT_ACTIVE_OPERATION_POLL_INTERVAL,
    DEFAULT_RESUME_SETTLE_DELAY,
    DEFAULT_TRACKING_INTERVAL,
)
from pyfieldtrack.exceptions import ReconciliationError
from pyfieldtrack.identity import Identity
from pyfieldtrack.models.operation import Operation
from pyfieldtrack.tracking.scheduler import TrackingScheduler

_logger = logging.getLogger(__name__)


class ResumeChoice(enum.StrEnum):
    RESUME = "resume"
    VIEW_ONLY = "view_only"
    DISMISS = "dismiss"


FetchActiveOperation = Callable[[str], Awaitable[Operation | None]]
ResumePrompt = Callable[[Operation, bool], Awaitable[ResumeChoice]]
SchedulerFactory = Callable[[str, float], TrackingScheduler]
OpenOperationCallback = Callable[[Operation], None]


class AutoResumeReconciler:
    """Poll for the operator's active operation and prompt to resume it.

    Parameters
    ----------
    fetch_active_operation : callable
        ``await fetch(operator_id)`` returning today's active operation or
        ``None``; usually :meth:`FieldTrackClient.get_active_operation`.
    identity : Identity or None
        The logged-in user. Only operator-capable identities are polled for.
    prompt : callable
        ``await prompt(operation, can_track)`` returning a
        :class:`ResumeChoice`. Awaited at most once per reconciler.
    scheduler_factory : callable
        ``factory(device_id, interval)`` building the scheduler started on
        :attr:`ResumeChoice.RESUME`.
    on_open_operation : callable or None
        Receives the operation on ``RESUME`` and ``VIEW_ONLY``.
    poll_interval : float
        Seconds between polls.
    settle_delay : float
        Seconds between finding an eligible operation and prompting.
    default_interval : float
        Tracking interval used when the operation's tracker has none.
    """

    def __init__(
        self,
        fetch_active_operation: FetchActiveOperation,
        identity: Identity | None,
        prompt: ResumePrompt,
        scheduler_factory: SchedulerFactory,
        *,
        on_open_operation: OpenOperationCallback | None = None,
        poll_interval: float = DEFAULT_ACTIVE_OPERATION_POLL_INTERVAL,
        settle_delay: float = DEFAULT_RESUME_SETTLE_DELAY,
        default_interval: float = DEFAULT_TRACKING_INTERVAL,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self._fetch = fetch_active_operation
        self._identity = identity
        self._prompt = prompt
        self._scheduler_factory = scheduler_factory
        self._on_open_operation = on_open_operation
        self._poll_interval = poll_interval
        self._settle_delay = max(settle_delay, 0.0)
        self._default_interval = default_interval

        self._poll_task: asyncio.Task[None] | None = None
        self._prompt_task: asyncio.Task[None] | None = None
        self._pending_operation_id: str | None = None
        self._prompting = False

        self.resolved = False
        self.choice: ResumeChoice | None = None
        self.active_operation: Operation | None = None
        self.scheduler: TrackingScheduler | None = None
        self.last_error: ReconciliationError | None = None
        self.prompt_count = 0

    async def __aenter__(self) -> AutoResumeReconciler:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def is_running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def has_pending_prompt(self) -> bool:
        return self._prompt_task is not None and not self._prompt_task.done()

    def start(self) -> None:
        """Begin polling. Does nothing for non-operators or when already running."""
        identity = self._identity
        if identity is None or not identity.is_operator:
            _logger.debug("Auto-resume disabled: identity is not operator-capable")
            return
        if self.is_running:
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def stop(self) -> None:
        """Cancel polling and any pending prompt.

        A scheduler started by a resume keeps running; stop it through
        :attr:`scheduler`.
        """
        tasks = [task for task in (self._poll_task, self._prompt_task) if task is not None]
        self._poll_task = None
        self._prompt_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def wait_until_settled(self) -> None:
        """Wait for a pending prompt (settle delay plus answer), if any."""
        task = self._prompt_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def poll_once(self) -> Operation | None:
        """Run one poll. Returns the active operation found, if any."""
        identity = self._identity
        if identity is None or not identity.is_operator:
            return None

        operation = await self._fetch_active(identity.user_id)
        self.active_operation = operation

        if operation is None:
            if self.has_pending_prompt and not self._prompting:
                _logger.debug("Active operation disappeared; cancelling pending resume prompt")
                self._cancel_pending_prompt()
            return None

        if self.resolved:
            return operation
        if self.has_pending_prompt:
            if self._prompting or operation.id == self._pending_operation_id:
                return operation
            _logger.debug(
                "Active operation changed from %s to %s; re-arming resume prompt",
                self._pending_operation_id,
                operation.id,
            )
            self._cancel_pending_prompt()
        if not self._is_eligible(operation, identity):
            return operation

        self._pending_operation_id = operation.id
        self._prompt_task = asyncio.get_running_loop().create_task(self._prompt_after_settle(operation))
        return operation

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cancel_pending_prompt(self) -> None:
        task = self._prompt_task
        self._prompt_task = None
        self._pending_operation_id = None
        if task is not None:
            task.cancel()

    async def _poll_loop(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self._poll_interval)

    async def _fetch_active(self, operator_id: str) -> Operation | None:
        try:
            return await self._fetch(operator_id)
        except Exception as exc:
            self.last_error = ReconciliationError(f"Failed to fetch active operation for {operator_id}: {exc}")
            _logger.warning("%s; treating as no active operation", self.last_error)
            return None

    @staticmethod
    def _is_eligible(operation: Operation, identity: Identity) -> bool:
        return operation.is_active and operation.operator_user_id == identity.user_id

    async def _prompt_after_settle(self, operation: Operation) -> None:
        await asyncio.sleep(self._settle_delay)
        if self.resolved:
            return
        can_track = operation.device_id is not None
        self._prompting = True
        try:
            self.prompt_count += 1
            choice = ResumeChoice(await self._prompt(operation, can_track))
        except Exception:
            _logger.warning("Resume prompt failed for operation %s", operation.id, exc_info=True)
            return
        finally:
            self._prompting = False
        self._resolve(operation, choice, can_track)

    def _resolve(self, operation: Operation, choice: ResumeChoice, can_track: bool) -> None:
        self.resolved = True
        self.choice = choice
        _logger.info("Resume prompt for operation %s resolved: %s", operation.id, choice.value)

        if choice is ResumeChoice.DISMISS:
            return
        if choice is ResumeChoice.RESUME and can_track:
            assert operation.device_id is not None  # noqa: S101
            scheduler = self._scheduler_factory(
                operation.device_id,
                operation.tracking_interval(self._default_interval),
            )
            scheduler.start_tracking()
            self.scheduler = scheduler
        if self._on_open_operation is not None:
            try:
                self._on_open_operation(operation)
            except Exception:
                _logger.debug("Open-operation callback failed", exc_info=True)
