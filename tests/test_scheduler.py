"""Tests for the asyncio scheduler."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from tcuwatch.scheduler import Job, Scheduler, is_daily_due, parse_time_of_day

IST = ZoneInfo("Asia/Kolkata")


class StepSleep:
    """Sleep replacement that blocks until the test releases a tick."""

    def __init__(self) -> None:
        self.calls: list[float] = []
        self.ticks: asyncio.Queue[None] = asyncio.Queue()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self.ticks.get()


async def _settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def test_parse_time_of_day() -> None:
    assert parse_time_of_day("09:00") == time(9, 0)
    assert parse_time_of_day(" 23:59 ") == time(23, 59)


@pytest.mark.parametrize("value", ["", "9", "09-00", "ab:cd", "25:00", "09:60"])
def test_parse_time_of_day_rejects(value: str) -> None:
    with pytest.raises(ValueError):
        parse_time_of_day(value)


def test_is_daily_due_uses_local_time() -> None:
    # 03:30 UTC is 09:00 IST.
    now = datetime(2026, 1, 1, 3, 30, 40, tzinfo=UTC)
    assert is_daily_due(now, time(9, 0), IST)
    assert not is_daily_due(now, time(9, 0), UTC)
    assert not is_daily_due(now + timedelta(minutes=1), time(9, 0), IST)


def test_every_rejects_non_positive_interval() -> None:
    scheduler = Scheduler()
    with pytest.raises(ValueError):
        scheduler.every("bad", timedelta(0), lambda: None)


@pytest.mark.asyncio
async def test_run_job_sync_and_async_callbacks(clock) -> None:
    scheduler = Scheduler(clock=clock)
    calls: list[str] = []

    async def async_cb() -> None:
        calls.append("async")

    sync_job = scheduler.every("sync", timedelta(minutes=1), lambda: calls.append("sync"))
    async_job = scheduler.every("async", timedelta(minutes=1), async_cb)

    await scheduler.run_job(sync_job)
    await scheduler.run_job(async_job)

    assert calls == ["sync", "async"]
    assert sync_job.runs == 1
    assert async_job.last_run_at == clock.now


@pytest.mark.asyncio
async def test_run_job_logs_failures(caplog: pytest.LogCaptureFixture) -> None:
    def broken() -> None:
        raise RuntimeError("kaput")

    scheduler = Scheduler()
    job = Job(name="broken", interval=timedelta(minutes=1), callback=broken)

    with caplog.at_level(logging.ERROR, logger="tcuwatch.scheduler"):
        await scheduler.run_job(job)

    assert job.runs == 1
    assert "Scheduled job broken failed" in caplog.text


@pytest.mark.asyncio
async def test_timer_fires_every_interval() -> None:
    sleep = StepSleep()
    scheduler = Scheduler(sleep=sleep)
    calls: list[int] = []
    scheduler.every("tick", timedelta(minutes=10), lambda: calls.append(1))

    scheduler.start()
    assert scheduler.is_running
    await _settle()
    assert calls == []
    assert sleep.calls == [600.0]

    sleep.ticks.put_nowait(None)
    await _settle()
    assert calls == [1]

    sleep.ticks.put_nowait(None)
    await _settle()
    assert calls == [1, 1]

    await scheduler.stop()
    assert not scheduler.is_running


@pytest.mark.asyncio
async def test_daily_job_runs_only_at_matching_minute(clock) -> None:
    clock.now = datetime(2026, 1, 1, 8, 58, tzinfo=IST)
    sleep = StepSleep()
    scheduler = Scheduler(clock=clock, sleep=sleep)
    calls: list[datetime] = []
    scheduler.daily_at("daily", time(9, 0), IST, lambda: calls.append(clock.now))

    scheduler.start()
    await _settle()
    assert sleep.calls == [60.0]

    for _ in range(3):
        clock.advance(minutes=1)
        sleep.ticks.put_nowait(None)
        await _settle()

    assert calls == [datetime(2026, 1, 1, 9, 0, tzinfo=IST)]
    await scheduler.stop()
