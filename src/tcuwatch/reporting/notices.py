"""One-off operational notices: startup, broker trouble, startup failure."""

from __future__ import annotations

from datetime import datetime, tzinfo

from tcuwatch.reporting._format import local_stamp


def render_startup_notice(
    *,
    now: datetime,
    tz: tzinfo,
    projects: int,
    topics: int,
    timeout_minutes: int,
    check_interval_minutes: int,
) -> str:
    return "\n".join(
        [
            "*TCU Monitor Started*",
            "",
            local_stamp(now, tz),
            "",
            "*Configuration:*",
            f"• Monitored Projects: {projects}",
            f"• MQTT Topics: {topics}",
            f"• Timeout: {timeout_minutes} min",
            f"• Check Interval: {check_interval_minutes} min",
            "",
            "System is now monitoring TCUs...",
        ]
    )


def render_broker_offline(*, now: datetime, tz: tzinfo, reason: str) -> str:
    return "\n".join(
        [
            "*MQTT CLIENT OFFLINE*",
            "",
            f"Reason: {reason}",
            f"Time: {local_stamp(now, tz)}",
            "",
            "Attempting to reconnect...",
        ]
    )


def render_broker_error(*, now: datetime, tz: tzinfo, error: str) -> str:
    return "\n".join(
        [
            "*MQTT CONNECTION ERROR*",
            "",
            f"Error: {error}",
            f"Time: {local_stamp(now, tz)}",
            "",
            "System will attempt to reconnect automatically.",
        ]
    )


def render_startup_error(*, now: datetime, tz: tzinfo, error: str) -> str:
    return "\n".join(
        [
            "*SYSTEM STARTUP ERROR*",
            "",
            f"Error: {error}",
            f"Time: {local_stamp(now, tz)}",
            "",
            "System may not be functioning properly.",
        ]
    )
