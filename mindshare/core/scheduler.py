"""Lightweight repeating-job scheduler on the running asyncio loop.

:class:`RepeatingJob` awaits a coroutine function at a fixed interval in a
background task.  Exceptions in the job are logged but never propagate, so
one failed tick never stops the loop.

:class:`PollScheduler` drives one job per record kind and moves between
three states::

    idle ──start()──▶ polling ◀──set_visibility(True)── suspended
      ▲                  │ ──set_visibility(False)──────▶ │
      └────stop()────────┴────────────stop()──────────────┘

Cancellation is the abort signal: suspending or stopping cancels every
pending timer and every in-flight fetch task.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import StrEnum

from mindshare.core.logging import EVENT_VISIBILITY_CHANGED, log_event
from mindshare.models.records import RecordKind

logger = logging.getLogger(__name__)


class RepeatingJob:
    """Await *func* every *interval_seconds* in a background task."""

    def __init__(
        self,
        func: Callable[[], Awaitable[None]],
        interval_seconds: float,
        *,
        name: str | None = None,
    ) -> None:
        self._func = func
        self._interval = interval_seconds
        self._name = name or getattr(func, "__name__", "job")
        self._task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        try:
            await self._func()
        except Exception:
            logger.exception("repeating_job_error: job=%s", self._name)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            # Schedule next run regardless of success/failure
            await self._run()

    def start(self) -> None:
        """Start the repeating job (first execution after one interval)."""
        if self.is_running:
            return
        logger.info(
            "repeating_job_started: job=%s interval=%ss",
            self._name,
            self._interval,
        )
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self._name)

    def stop(self) -> asyncio.Task[None] | None:
        """Cancel the pending timer (and any tick in progress).

        Returns the cancelled task so callers can await its completion.
        """
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            logger.info("repeating_job_stopped: job=%s", self._name)
        return task


class SchedulerState(StrEnum):
    idle = "idle"
    polling = "polling"
    suspended = "suspended"


async def _drain(tasks: list[asyncio.Task[None]]) -> None:
    for task in tasks:
        with contextlib.suppress(asyncio.CancelledError):
            await task


class PollScheduler:
    """Visibility-aware polling of every record kind.

    Args:
        fetch: Coroutine function fetching and merging one record kind.
        intervals: Seconds between ticks, per record kind.
    """

    def __init__(
        self,
        fetch: Callable[[RecordKind], Awaitable[None]],
        intervals: Mapping[RecordKind, float],
    ) -> None:
        self._fetch = fetch
        self._intervals = dict(intervals)
        self._jobs: dict[RecordKind, RepeatingJob] = {}
        self._inflight: set[asyncio.Task[None]] = set()
        self.state = SchedulerState.idle

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    @property
    def active_jobs(self) -> int:
        return sum(1 for job in self._jobs.values() if job.is_running)

    async def _guarded(self, kind: RecordKind) -> None:
        try:
            await self._fetch(kind)
        except Exception:
            logger.exception("poll_fetch_error: kind=%s", kind)

    def _spawn(self, kind: RecordKind) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(
            self._guarded(kind), name=f"fetch-{kind}",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    def refresh(self) -> list[asyncio.Task[None]]:
        """Fetch every record kind now; returns the tracked fetch tasks."""
        return [self._spawn(kind) for kind in self._intervals]

    def _start_jobs(self) -> None:
        for kind, interval in self._intervals.items():
            job = RepeatingJob(
                functools.partial(self._guarded, kind), interval, name=f"poll-{kind}",
            )
            self._jobs[kind] = job
            job.start()

    def _cancel_all(self) -> list[asyncio.Task[None]]:
        cancelled = [task for job in self._jobs.values() if (task := job.stop())]
        self._jobs.clear()
        for task in list(self._inflight):
            task.cancel()
            cancelled.append(task)
        return cancelled

    def start(self) -> None:
        """Fetch every source immediately, then tick at each kind's interval."""
        if self.state is not SchedulerState.idle:
            return
        self.state = SchedulerState.polling
        self.refresh()
        self._start_jobs()

    def set_visibility(self, visible: bool) -> None:
        """Suspend polling while hidden; refresh and resume when visible again."""
        if visible and self.state is SchedulerState.suspended:
            self.state = SchedulerState.polling
            self.refresh()
            self._start_jobs()
        elif not visible and self.state is SchedulerState.polling:
            self._cancel_all()
            self.state = SchedulerState.suspended
        else:
            return
        log_event(logger, "info", EVENT_VISIBILITY_CHANGED, visible=visible, state=self.state)

    async def stop(self) -> None:
        """Cancel every timer and in-flight fetch and return to ``idle``."""
        cancelled = self._cancel_all()
        self.state = SchedulerState.idle
        await _drain(cancelled)
