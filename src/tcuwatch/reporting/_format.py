"""Formatting helpers shared by the renderers."""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo


def percentage(part: int, total: int) -> float:
    """Share of *part* in *total*, one decimal, ``0.0`` for an empty total."""
    if total <= 0:
        return 0.0
    return round(part / total * 100, 1)


def local_stamp(moment: datetime, tz: tzinfo) -> str:
    """``DD/MM/YYYY HH:MM:SS ZONE`` as shown in chat messages."""
    return moment.astimezone(tz).strftime("%d/%m/%Y %H:%M:%S %Z").strip()


def log_stamp(moment: datetime, tz: tzinfo) -> str:
    """``YYYY-MM-DD HH:MM:SS ZONE`` as written to log streams."""
    return moment.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def clock_time(moment: datetime, tz: tzinfo, *, with_zone: bool = False) -> str:
    fmt = "%H:%M:%S %Z" if with_zone else "%H:%M:%S"
    return moment.astimezone(tz).strftime(fmt).strip()


def format_uptime(uptime: timedelta) -> str:
    total_minutes = max(int(uptime.total_seconds() // 60), 0)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"
