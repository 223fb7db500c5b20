"""Typed domain models."""

from tcuwatch.models.findings import InactivityFinding, InactivityStatus
from tcuwatch.models.registry import DeviceRegistry, GroupKey, RegistryEntry

__all__ = [
    "DeviceRegistry",
    "GroupKey",
    "InactivityFinding",
    "InactivityStatus",
    "RegistryEntry",
]
