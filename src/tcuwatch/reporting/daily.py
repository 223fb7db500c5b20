"""Once-a-day health summary sent to the alert groups."""

from __future__ import annotations

from datetime import datetime, tzinfo

from pydantic import BaseModel, ConfigDict

from tcuwatch.models.registry import DeviceRegistry
from tcuwatch.reporting.status import StatusTally, classify_registry
from tcuwatch.state.store import LivenessStore


class DailySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    generated_at: datetime
    tally: StatusTally
    timeout_minutes: int
    check_interval_minutes: int
    quiet_hours: str


def build_daily_summary(
    registry: DeviceRegistry,
    store: LivenessStore,
    *,
    now: datetime,
    timeout_minutes: int,
    check_interval_minutes: int,
    quiet_hours: str,
) -> DailySummary:
    groups = classify_registry(registry, store, now=now, timeout_minutes=timeout_minutes)
    return DailySummary(
        generated_at=now,
        tally=StatusTally.from_groups(groups),
        timeout_minutes=timeout_minutes,
        check_interval_minutes=check_interval_minutes,
        quiet_hours=quiet_hours,
    )


def render_daily_summary(summary: DailySummary, tz: tzinfo) -> str:
    local = summary.generated_at.astimezone(tz)
    tally = summary.tally
    zone = local.tzname() or ""
    return "\n".join(
        [
            "*DAILY SYSTEM SUMMARY*",
            "",
            f"Date: {local.strftime('%d/%m/%Y')}",
            f"Time: {local.strftime('%H:%M:%S')} {zone}".rstrip(),
            "",
            "*TCU Status Overview:*",
            f"Active: {tally.active}",
            f"Inactive: {tally.inactive}",
            f"Never Received: {tally.never_received}",
            f"Total Monitored: {tally.total}",
            "",
            f"*Overall Health: {tally.active_percentage:.1f}%*",
            "",
            "*System Info:*",
            f"Timeout Limit: {summary.timeout_minutes} minutes",
            f"Check Interval: {summary.check_interval_minutes} minutes",
            f"Night Mode: {summary.quiet_hours} {zone}".rstrip(),
        ]
    )
