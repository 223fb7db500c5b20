"""Static registry of the devices each NCU is expected to host."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tcuwatch.exceptions import TcuConfigError


class GroupKey(NamedTuple):
    """``(project, ncu)`` pair identifying one NCU."""

    project: str
    ncu: str

    def __str__(self) -> str:
        return f"{self.project}/{self.ncu}"


class RegistryEntry(BaseModel):
    """Configured device population of one NCU.

    ``expected_device_ids`` may be empty, meaning the exact ids are not
    known and the NCU is assumed to host ids ``1..total_devices``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    total_devices: int = Field(..., ge=0, alias="totalTCUs")
    expected_device_ids: tuple[int, ...] = Field(default=(), alias="expectedTCUs")

    @field_validator("expected_device_ids")
    @classmethod
    def _dedupe_ids(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        seen: set[int] = set()
        ordered: list[int] = []
        for device_id in value:
            if device_id < 0:
                raise ValueError(f"device id must be non-negative, got {device_id}")
            if device_id not in seen:
                seen.add(device_id)
                ordered.append(device_id)
        return tuple(ordered)

    @property
    def monitored_device_ids(self) -> tuple[int, ...]:
        """Ids the NCU is expected to report."""
        if self.expected_device_ids:
            return self.expected_device_ids
        return tuple(range(1, self.total_devices + 1))


class DeviceRegistry:
    """Ordered, read-only mapping of :class:`GroupKey` to :class:`RegistryEntry`."""

    def __init__(self, entries: Mapping[GroupKey, RegistryEntry] | None = None) -> None:
        self._entries: dict[GroupKey, RegistryEntry] = dict(entries or {})

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, Any]]) -> DeviceRegistry:
        """Build a registry from the nested ``{project: {ncu: entry}}`` layout.

        Raises
        ------
        TcuConfigError
            If an entry is malformed.
        """
        entries: dict[GroupKey, RegistryEntry] = {}
        for project, ncus in data.items():
            if not isinstance(ncus, Mapping):
                raise TcuConfigError(f"Registry project {project!r} must map NCU names to entries")
            for ncu, raw_entry in ncus.items():
                key = GroupKey(str(project), str(ncu))
                try:
                    entries[key] = RegistryEntry.model_validate(raw_entry)
                except ValidationError as exc:
                    raise TcuConfigError(f"Invalid registry entry for {key}: {exc}") from exc
        return cls(entries)

    def get(self, project: str, ncu: str) -> RegistryEntry | None:
        return self._entries.get(GroupKey(project, ncu))

    def groups(self) -> list[GroupKey]:
        return list(self._entries)

    def items(self) -> list[tuple[GroupKey, RegistryEntry]]:
        return list(self._entries.items())

    @property
    def projects(self) -> list[str]:
        """Distinct project names, in configuration order."""
        return list(dict.fromkeys(key.project for key in self._entries))

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[GroupKey]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
