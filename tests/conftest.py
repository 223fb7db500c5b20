from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from tcuwatch.notify import DispatchResult
from tcuwatch.sinks import MemoryLogSink

IST = ZoneInfo("Asia/Kolkata")


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeNotifier:
    """Records messages; recipients in ``failing`` get a failed result."""

    def __init__(self, failing: Sequence[str] = ()) -> None:
        self.failing = set(failing)
        self.started = False
        self.closed = False
        self.groups: list[tuple[list[str], str]] = []
        self.contacts: list[tuple[list[str], str]] = []

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    def _results(self, kind: str, recipients: Sequence[str]) -> list[DispatchResult]:
        return [
            DispatchResult(
                recipient=recipient,
                kind=kind,  # type: ignore[arg-type]
                success=recipient not in self.failing,
                error="boom" if recipient in self.failing else None,
            )
            for recipient in recipients
        ]

    async def send_to_groups(self, groups: Sequence[str], text: str) -> list[DispatchResult]:
        self.groups.append((list(groups), text))
        return self._results("group", groups)

    async def send_to_contacts(self, contacts: Sequence[str], text: str) -> list[DispatchResult]:
        self.contacts.append((list(contacts), text))
        return self._results("contact", contacts)


@pytest.fixture
def clock() -> FakeClock:
    # 10:00 IST, outside quiet hours.
    return FakeClock(datetime(2026, 1, 1, 10, 0, tzinfo=IST))


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def sink() -> MemoryLogSink:
    return MemoryLogSink()
