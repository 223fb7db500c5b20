"""Decoded telemetry events.

The decoder turns every accepted MQTT message into one of these. Only the
liveness store consumes them.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tcuwatch.models.registry import GroupKey


class TelemetryEvent(BaseModel):
    """A device announced itself on its NCU's status topic."""

    model_config = ConfigDict(frozen=True)

    project: str
    ncu: str
    device_id: int = Field(..., ge=0)
    received_at: datetime
    raw: str = Field(default="", description="Trimmed payload text, kept for logging only")

    @field_validator("project", "ncu")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must be non-empty")
        return stripped

    @field_validator("received_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def group(self) -> GroupKey:
        return GroupKey(self.project, self.ncu)
