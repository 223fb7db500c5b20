"""Immediate inactivity alert."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, tzinfo

from pydantic import BaseModel, ConfigDict

from tcuwatch.models.findings import InactivityFinding
from tcuwatch.models.registry import GroupKey
from tcuwatch.reporting._format import local_stamp, log_stamp


class GroupFindings(BaseModel):
    model_config = ConfigDict(frozen=True)

    project: str
    ncu: str
    findings: tuple[InactivityFinding, ...]


class InactivityAlert(BaseModel):
    """Silent devices across all NCUs at one evaluation."""

    model_config = ConfigDict(frozen=True)

    generated_at: datetime
    groups: tuple[GroupFindings, ...]
    timeout_minutes: int
    check_interval_minutes: int

    @property
    def total_inactive(self) -> int:
        return sum(len(group.findings) for group in self.groups)


def build_inactivity_alert(
    findings: Mapping[GroupKey, Sequence[InactivityFinding]],
    *,
    now: datetime,
    timeout_minutes: int,
    check_interval_minutes: int,
) -> InactivityAlert | None:
    """Wrap policy output; ``None`` when nothing is inactive."""
    groups = tuple(
        GroupFindings(project=key.project, ncu=key.ncu, findings=tuple(items))
        for key, items in findings.items()
        if items
    )
    if not groups:
        return None
    return InactivityAlert(
        generated_at=now,
        groups=groups,
        timeout_minutes=timeout_minutes,
        check_interval_minutes=check_interval_minutes,
    )


def render_inactivity_alert(alert: InactivityAlert, tz: tzinfo) -> str:
    """Chat message for the alert, timestamped in *tz*."""
    lines = ["*INACTIVE TCU ALERT*", "", f"Time: {local_stamp(alert.generated_at, tz)}", ""]
    for group in alert.groups:
        lines.append(f"*Project:* {group.project.upper()}")
        lines.append(f"*NCU:* {group.ncu}")
        lines.append("*Inactive TCUs:*")
        lines.extend(f"   • TCU-{finding.device_id}: {finding.label}" for finding in group.findings)
        lines.append("")
    lines.append(f"*Total Inactive:* {alert.total_inactive} TCUs")
    lines.append(f"*Timeout Limit:* {alert.timeout_minutes} minutes")
    lines.append("")
    lines.append(f"Next check in {alert.check_interval_minutes} minutes")
    return "\n".join(lines)


def inactivity_log_lines(alert: InactivityAlert, tz: tzinfo) -> list[str]:
    """Lines for the ``inactive_tcus`` stream."""
    lines = [f"=== INACTIVE TCU REPORT at {log_stamp(alert.generated_at, tz)} ==="]
    for group in alert.groups:
        lines.append(f"Project: {group.project}, NCU: {group.ncu}")
        lines.extend(f"  └─ TCU-{finding.device_id}: {finding.log_label}" for finding in group.findings)
    lines.append("=== END REPORT ===")
    return lines
