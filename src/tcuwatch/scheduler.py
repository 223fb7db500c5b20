"""asyncio timers driving the periodic checks.

Every firing runs its callback as a separate task, so a slow run never
delays the next tick. Runs may overlap; callbacks only read state.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, time, timedelta, tzinfo
from typing import Any

_logger = logging.getLogger(__name__)

# Either a plain function or a coroutine function.
JobCallback = Callable[[], Any]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` into a :class:`datetime.time`."""
    hour_text, sep, minute_text = value.strip().partition(":")
    if not sep or not hour_text.isdigit() or not minute_text.isdigit():
        raise ValueError(f"expected HH:MM, got {value!r}")
    return time(hour=int(hour_text), minute=int(minute_text))


def is_daily_due(now: datetime, at: time, tz: tzinfo) -> bool:
    """Whether the local wall clock in *tz* reads exactly *at* (minute precision)."""
    local = now.astimezone(tz)
    return local.hour == at.hour and local.minute == at.minute


@dataclasses.dataclass
class Job:
    name: str
    interval: timedelta
    callback: JobCallback
    should_run: Callable[[datetime], bool] | None = None
    runs: int = 0
    last_run_at: datetime | None = None


class Scheduler:
    """Owns the periodic jobs of a monitor."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._jobs: list[Job] = []
        self._timers: list[asyncio.Task[None]] = []
        self._running: set[asyncio.Task[Any]] = set()

    @property
    def jobs(self) -> list[Job]:
        return list(self._jobs)

    @property
    def is_running(self) -> bool:
        return bool(self._timers)

    def every(self, name: str, interval: timedelta, callback: JobCallback) -> Job:
        """Run *callback* every *interval*, first run one interval after start."""
        if interval <= timedelta(0):
            raise ValueError(f"interval for {name!r} must be positive")
        job = Job(name=name, interval=interval, callback=callback)
        self._jobs.append(job)
        return job

    def daily_at(
        self,
        name: str,
        at: time,
        tz: tzinfo,
        callback: JobCallback,
        *,
        tick: timedelta = timedelta(minutes=1),
    ) -> Job:
        """Run *callback* on the tick whose local time matches *at*.

        A tick missed entirely (process suspended over the matching
        minute) skips that day's run.
        """
        job = Job(
            name=name,
            interval=tick,
            callback=callback,
            should_run=lambda now: is_daily_due(now, at, tz),
        )
        self._jobs.append(job)
        return job

    def start(self) -> None:
        if self._timers:
            return
        for job in self._jobs:
            self._timers.append(asyncio.create_task(self._timer(job), name=f"tcuwatch-timer-{job.name}"))
        _logger.debug("Scheduler started jobs=%s", [job.name for job in self._jobs])

    async def stop(self) -> None:
        """Stop the timers. In-flight runs are left to finish on their own."""
        timers, self._timers = self._timers, []
        for task in timers:
            task.cancel()
        for task in timers:
            try:
                await task
            except asyncio.CancelledError:
                pass
        _logger.debug("Scheduler stopped")

    async def run_job(self, job: Job) -> None:
        """Run one job now, logging instead of raising on failure."""
        job.runs += 1
        job.last_run_at = self._clock()
        try:
            result = job.callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            _logger.exception("Scheduled job %s failed", job.name)

    async def _timer(self, job: Job) -> None:
        interval = job.interval.total_seconds()
        while True:
            await self._sleep(interval)
            if job.should_run is not None and not job.should_run(self._clock()):
                continue
            task = asyncio.create_task(self.run_job(job), name=f"tcuwatch-job-{job.name}")
            self._running.add(task)
            task.add_done_callback(self._running.discard)
