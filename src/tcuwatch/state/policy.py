"""Inactivity policy.

Decides which devices count as silent at a given moment. Evaluation is
pure: findings are recomputed from the store on every call and never
cached.
"""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime, tzinfo

from tcuwatch._constants import DEFAULT_QUIET_END_HOUR, DEFAULT_QUIET_START_HOUR, DEFAULT_TIMEOUT_MINUTES
from tcuwatch.models.findings import InactivityFinding
from tcuwatch.models.registry import DeviceRegistry, GroupKey
from tcuwatch.state.store import LivenessStore


def elapsed_minutes(now: datetime, then: datetime) -> int:
    """Whole minutes between two instants, rounded down."""
    return int((now - then).total_seconds() // 60)


def is_timed_out(minutes: int, timeout_minutes: int) -> bool:
    """Timeout is strict: exactly ``timeout_minutes`` is still active."""
    return minutes > timeout_minutes


@dataclasses.dataclass(frozen=True)
class QuietHours:
    """Daily window in which inactivity alerts are suppressed.

    ``start_hour`` is inclusive and ``end_hour`` exclusive. A window with
    ``start_hour > end_hour`` wraps past midnight; equal bounds disable it.
    """

    start_hour: int = DEFAULT_QUIET_START_HOUR
    end_hour: int = DEFAULT_QUIET_END_HOUR

    def __post_init__(self) -> None:
        for value in (self.start_hour, self.end_hour):
            if not 0 <= value <= 23:
                raise ValueError(f"quiet hour bounds must be within 0..23, got {value}")

    def contains(self, moment: datetime, tz: tzinfo = UTC) -> bool:
        hour = moment.astimezone(tz).hour
        if self.start_hour == self.end_hour:
            return False
        if self.start_hour < self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour

    def describe(self) -> str:
        return f"{self.start_hour:02d}:00-{self.end_hour:02d}:00"


class InactivityPolicy:
    """Computes silent devices for every NCU."""

    def __init__(
        self,
        registry: DeviceRegistry,
        store: LivenessStore,
        *,
        timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES,
        quiet_hours: QuietHours | None = None,
        timezone: tzinfo = UTC,
    ) -> None:
        self._registry = registry
        self._store = store
        self.timeout_minutes = timeout_minutes
        self.quiet_hours = quiet_hours or QuietHours()
        self.timezone = timezone

    def is_suppressed(self, now: datetime) -> bool:
        return self.quiet_hours.contains(now, self.timezone)

    def evaluate(self, now: datetime) -> dict[GroupKey, list[InactivityFinding]]:
        """Findings per NCU, or nothing at all during quiet hours."""
        if self.is_suppressed(now):
            return {}
        return self.find_inactive(now)

    def find_inactive(self, now: datetime) -> dict[GroupKey, list[InactivityFinding]]:
        """Findings per NCU regardless of the time of day.

        Registry NCUs come first, in configuration order, followed by NCUs
        only known from telemetry.
        """
        groups = self._registry.groups()
        groups.extend(key for key in self._store.groups() if key not in self._registry)

        result: dict[GroupKey, list[InactivityFinding]] = {}
        for key in groups:
            findings = self._evaluate_group(key, now)
            if findings:
                result[key] = findings
        return result

    def _evaluate_group(self, key: GroupKey, now: datetime) -> list[InactivityFinding]:
        findings: list[InactivityFinding] = []
        flagged: set[int] = set()

        entry = self._registry.get(key.project, key.ncu)
        if entry is not None:
            for device_id in entry.monitored_device_ids:
                last = self._store.last_seen(key.project, key.ncu, device_id)
                if last is None:
                    findings.append(InactivityFinding.never_received(device_id))
                    flagged.add(device_id)
                    continue
                minutes = elapsed_minutes(now, last)
                if is_timed_out(minutes, self.timeout_minutes):
                    findings.append(InactivityFinding.timed_out(device_id, minutes))
                    flagged.add(device_id)

        # Devices outside the registry still time out once they have spoken.
        for device_id in sorted(self._store.seen_device_ids(key.project, key.ncu)):
            if device_id in flagged:
                continue
            last = self._store.last_seen(key.project, key.ncu, device_id)
            if last is None:
                continue
            minutes = elapsed_minutes(now, last)
            if is_timed_out(minutes, self.timeout_minutes):
                findings.append(InactivityFinding.timed_out(device_id, minutes))
                flagged.add(device_id)

        return findings
