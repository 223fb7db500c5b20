"""Periodic full status report.

Unlike the inactivity alert this report ignores quiet hours and covers
every configured NCU, including devices that are healthy.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, tzinfo

from pydantic import BaseModel, ConfigDict

from tcuwatch.models.registry import DeviceRegistry, GroupKey
from tcuwatch.reporting._format import clock_time, format_uptime, log_stamp, percentage
from tcuwatch.state.policy import elapsed_minutes, is_timed_out
from tcuwatch.state.store import LivenessStore


class ActiveDevice(BaseModel):
    model_config = ConfigDict(frozen=True)

    device_id: int
    minutes_since: int
    last_seen_at: datetime


class InactiveDevice(BaseModel):
    model_config = ConfigDict(frozen=True)

    device_id: int
    minutes_inactive: int
    last_seen_at: datetime


class GroupStatus(BaseModel):
    """Partition of one NCU's known devices."""

    model_config = ConfigDict(frozen=True)

    project: str
    ncu: str
    total_devices: int
    active: tuple[ActiveDevice, ...] = ()
    inactive: tuple[InactiveDevice, ...] = ()
    never_received: tuple[int, ...] = ()

    @property
    def known_count(self) -> int:
        return len(self.active) + len(self.inactive) + len(self.never_received)

    @property
    def active_percentage(self) -> float:
        return percentage(len(self.active), self.known_count)


class StatusTally(BaseModel):
    model_config = ConfigDict(frozen=True)

    active: int = 0
    inactive: int = 0
    never_received: int = 0

    @property
    def total(self) -> int:
        return self.active + self.inactive + self.never_received

    @property
    def active_percentage(self) -> float:
        return percentage(self.active, self.total)

    @classmethod
    def from_groups(cls, groups: Iterable[GroupStatus]) -> StatusTally:
        active = inactive = never = 0
        for group in groups:
            active += len(group.active)
            inactive += len(group.inactive)
            never += len(group.never_received)
        return cls(active=active, inactive=inactive, never_received=never)


class StatusReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    generated_at: datetime
    groups: tuple[GroupStatus, ...]
    tally: StatusTally
    timeout_minutes: int
    uptime: timedelta
    next_check_at: datetime


def classify_group(
    key: GroupKey,
    registry: DeviceRegistry,
    store: LivenessStore,
    *,
    now: datetime,
    timeout_minutes: int,
) -> GroupStatus:
    """Split every known device of *key* into active, inactive and never received."""
    active: list[ActiveDevice] = []
    inactive: list[InactiveDevice] = []
    never: list[int] = []

    for device_id in sorted(store.all_known_device_ids(key.project, key.ncu)):
        last = store.last_seen(key.project, key.ncu, device_id)
        if last is None:
            never.append(device_id)
            continue
        minutes = elapsed_minutes(now, last)
        if is_timed_out(minutes, timeout_minutes):
            inactive.append(InactiveDevice(device_id=device_id, minutes_inactive=minutes, last_seen_at=last))
        else:
            active.append(ActiveDevice(device_id=device_id, minutes_since=minutes, last_seen_at=last))

    entry = registry.get(key.project, key.ncu)
    return GroupStatus(
        project=key.project,
        ncu=key.ncu,
        total_devices=entry.total_devices if entry is not None else 0,
        active=tuple(active),
        inactive=tuple(inactive),
        never_received=tuple(never),
    )


def classify_registry(
    registry: DeviceRegistry,
    store: LivenessStore,
    *,
    now: datetime,
    timeout_minutes: int,
) -> tuple[GroupStatus, ...]:
    return tuple(
        classify_group(key, registry, store, now=now, timeout_minutes=timeout_minutes) for key in registry
    )


def build_status_report(
    registry: DeviceRegistry,
    store: LivenessStore,
    *,
    now: datetime,
    timeout_minutes: int,
    started_at: datetime,
    interval_minutes: int,
) -> StatusReport:
    groups = classify_registry(registry, store, now=now, timeout_minutes=timeout_minutes)
    return StatusReport(
        generated_at=now,
        groups=groups,
        tally=StatusTally.from_groups(groups),
        timeout_minutes=timeout_minutes,
        uptime=now - started_at,
        next_check_at=now + timedelta(minutes=interval_minutes),
    )


def render_status_report(report: StatusReport, tz: tzinfo) -> list[str]:
    """Lines for the ``status_report`` stream, times shown in *tz*."""
    lines = [f"=== HOURLY STATUS REPORT at {log_stamp(report.generated_at, tz)} ==="]

    for group in report.groups:
        lines.append("")
        lines.append(f"Project: {group.project.upper()}, NCU: {group.ncu}")
        lines.append(f"   Total Expected TCUs: {group.total_devices}")
        if group.active:
            lines.append(f"   ACTIVE TCUs ({len(group.active)}):")
            lines.extend(
                f"      TCU-{item.device_id}: Last seen {item.minutes_since} min ago "
                f"({clock_time(item.last_seen_at, tz)})"
                for item in group.active
            )
        if group.inactive:
            lines.append(f"   INACTIVE TCUs ({len(group.inactive)}):")
            lines.extend(
                f"      TCU-{item.device_id}: Inactive for {item.minutes_inactive} min "
                f"(Last: {clock_time(item.last_seen_at, tz)})"
                for item in group.inactive
            )
        if group.never_received:
            lines.append(f"   NEVER RECEIVED ({len(group.never_received)}):")
            lines.extend(f"      TCU-{device_id}: No data received" for device_id in group.never_received)
        lines.append(
            f"   Summary: {len(group.active)} Active, {len(group.inactive)} Inactive, "
            f"{len(group.never_received)} Never Received ({group.active_percentage:.1f}% active)"
        )

    tally = report.tally
    lines.append("")
    lines.append("OVERALL SUMMARY:")
    lines.append(f"   Total TCUs Monitored: {tally.total}")
    lines.append(f"   Active: {tally.active}")
    lines.append(f"   Inactive: {tally.inactive}")
    lines.append(f"   Never Received: {tally.never_received}")
    lines.append(f"   Overall Health: {tally.active_percentage:.1f}% Active")
    lines.append(f"   System Uptime: {format_uptime(report.uptime)}")
    lines.append(f"   Next Check: {clock_time(report.next_check_at, tz, with_zone=True)}")
    lines.append("=== END STATUS REPORT ===")
    return lines
