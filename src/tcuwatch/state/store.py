"""In-memory last-seen table.

A missing record is the "never received" signal; the store never holds a
placeholder for devices that have not reported.
"""

from __future__ import annotations

from datetime import datetime

from tcuwatch.models.registry import DeviceRegistry, GroupKey
from tcuwatch.state.events import TelemetryEvent


class LivenessStore:
    """Last-seen timestamps keyed by ``(project, ncu, device_id)``.

    Writes are last-write-wins: a later call for the same device replaces
    the timestamp even if it is older. Device ids missing from the
    registry are accepted.
    """

    def __init__(self, registry: DeviceRegistry | None = None) -> None:
        self._registry = registry or DeviceRegistry()
        self._groups: dict[GroupKey, dict[int, datetime]] = {}

    def record_seen(self, project: str, ncu: str, device_id: int, at: datetime) -> None:
        if at.tzinfo is None:
            raise ValueError("last-seen timestamps must be timezone-aware")
        self._groups.setdefault(GroupKey(project, ncu), {})[device_id] = at

    def apply(self, event: TelemetryEvent) -> None:
        """Record a decoded telemetry event."""
        self.record_seen(event.project, event.ncu, event.device_id, event.received_at)

    def last_seen(self, project: str, ncu: str, device_id: int) -> datetime | None:
        records = self._groups.get(GroupKey(project, ncu))
        if records is None:
            return None
        return records.get(device_id)

    def seen_device_ids(self, project: str, ncu: str) -> set[int]:
        return set(self._groups.get(GroupKey(project, ncu), {}))

    def all_known_device_ids(self, project: str, ncu: str) -> set[int]:
        """Registry ids for the NCU plus every id that ever reported on it."""
        known = self.seen_device_ids(project, ncu)
        entry = self._registry.get(project, ncu)
        if entry is not None:
            known.update(entry.monitored_device_ids)
        return known

    def groups(self) -> list[GroupKey]:
        """NCUs with at least one record."""
        return [key for key, records in self._groups.items() if records]

    def snapshot(self) -> dict[GroupKey, dict[int, datetime]]:
        return {key: dict(records) for key, records in self._groups.items()}

    def __len__(self) -> int:
        return sum(len(records) for records in self._groups.values())
