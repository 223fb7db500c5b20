"""Inactivity findings produced by the policy."""

from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class InactivityStatus(StrEnum):
    NEVER_RECEIVED = "never_received"
    TIMED_OUT = "timed_out"


class InactivityFinding(BaseModel):
    """One device flagged by an inactivity evaluation.

    ``minutes_inactive`` is ``math.inf`` for devices that never reported.
    """

    model_config = ConfigDict(frozen=True)

    device_id: int
    status: InactivityStatus
    minutes_inactive: float

    @classmethod
    def never_received(cls, device_id: int) -> InactivityFinding:
        return cls(device_id=device_id, status=InactivityStatus.NEVER_RECEIVED, minutes_inactive=math.inf)

    @classmethod
    def timed_out(cls, device_id: int, minutes: int) -> InactivityFinding:
        return cls(device_id=device_id, status=InactivityStatus.TIMED_OUT, minutes_inactive=minutes)

    @property
    def label(self) -> str:
        """Human readable status, as used in chat alerts."""
        if self.status == InactivityStatus.NEVER_RECEIVED:
            return "NEVER RECEIVED"
        return f"TIMEOUT ({int(self.minutes_inactive)} min)"

    @property
    def log_label(self) -> str:
        """Status as written to the ``inactive_tcus`` stream."""
        if self.status == InactivityStatus.NEVER_RECEIVED:
            return "NEVER RECEIVED DATA"
        return self.label
