"""Tests for the inactivity policy and quiet hours."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from tcuwatch.models.findings import InactivityStatus
from tcuwatch.models.registry import DeviceRegistry, GroupKey, RegistryEntry
from tcuwatch.state.policy import InactivityPolicy, QuietHours, elapsed_minutes, is_timed_out
from tcuwatch.state.store import LivenessStore

IST = ZoneInfo("Asia/Kolkata")
PROJ = GroupKey("proj", "ncu")


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 1, 1, hour, minute, tzinfo=IST)


def _policy(registry: DeviceRegistry, store: LivenessStore) -> InactivityPolicy:
    return InactivityPolicy(registry, store, timeout_minutes=30, timezone=IST)


def _by_id(findings: list) -> dict[int, tuple[InactivityStatus, float]]:
    return {f.device_id: (f.status, f.minutes_inactive) for f in findings}


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def test_elapsed_minutes_rounds_down() -> None:
    t0 = _at(10)
    assert elapsed_minutes(t0 + timedelta(minutes=30, seconds=59), t0) == 30
    assert elapsed_minutes(t0 + timedelta(minutes=31), t0) == 31


def test_timeout_is_strict() -> None:
    assert not is_timed_out(30, 30)
    assert is_timed_out(31, 30)


# ------------------------------------------------------------------
# Quiet hours
# ------------------------------------------------------------------


class TestQuietHours:
    @pytest.mark.parametrize(
        ("hour", "minute", "expected"),
        [
            (18, 59, False),
            (19, 0, True),
            (23, 59, True),
            (0, 0, True),
            (5, 59, True),
            (6, 0, False),
            (10, 0, False),
        ],
    )
    def test_default_window_wraps_midnight(self, hour: int, minute: int, expected: bool) -> None:
        assert QuietHours().contains(_at(hour, minute), IST) is expected

    def test_hour_taken_in_monitoring_zone(self) -> None:
        # 14:00 UTC is 19:30 IST.
        assert QuietHours().contains(datetime(2026, 1, 1, 14, 0, tzinfo=UTC), IST)
        assert not QuietHours().contains(datetime(2026, 1, 1, 14, 0, tzinfo=UTC), UTC)

    def test_non_wrapping_window(self) -> None:
        window = QuietHours(start_hour=1, end_hour=4)
        assert window.contains(_at(2), IST)
        assert not window.contains(_at(4), IST)
        assert not window.contains(_at(0), IST)

    def test_equal_bounds_disable_window(self) -> None:
        assert not QuietHours(start_hour=0, end_hour=0).contains(_at(3), IST)

    def test_invalid_bounds(self) -> None:
        with pytest.raises(ValueError):
            QuietHours(start_hour=24, end_hour=6)

    def test_describe(self) -> None:
        assert QuietHours().describe() == "19:00-06:00"


# ------------------------------------------------------------------
# Evaluation
# ------------------------------------------------------------------


class TestInactivityPolicy:
    def test_scenario_timeouts_and_never_received(self) -> None:
        registry = DeviceRegistry({PROJ: RegistryEntry(total_devices=3)})
        store = LivenessStore(registry)
        t0 = _at(10)
        store.record_seen("proj", "ncu", 1, t0)
        store.record_seen("proj", "ncu", 2, t0)

        result = _policy(registry, store).evaluate(t0 + timedelta(minutes=31))

        assert list(result) == [PROJ]
        assert _by_id(result[PROJ]) == {
            1: (InactivityStatus.TIMED_OUT, 31),
            2: (InactivityStatus.TIMED_OUT, 31),
            3: (InactivityStatus.NEVER_RECEIVED, math.inf),
        }

    def test_exactly_threshold_is_not_timed_out(self) -> None:
        registry = DeviceRegistry({PROJ: RegistryEntry(total_devices=1)})
        store = LivenessStore(registry)
        t0 = _at(10)
        store.record_seen("proj", "ncu", 1, t0)

        policy = _policy(registry, store)
        assert policy.evaluate(t0 + timedelta(minutes=30)) == {}
        assert _by_id(policy.evaluate(t0 + timedelta(minutes=31))[PROJ]) == {1: (InactivityStatus.TIMED_OUT, 31)}

    def test_explicit_expected_ids_never_received(self) -> None:
        key = GroupKey("bhojabedi", "2240")
        registry = DeviceRegistry(
            {key: RegistryEntry(total_devices=33, expected_device_ids=tuple(range(48, 81)))}
        )
        store = LivenessStore(registry)
        now = _at(10)
        for device_id in range(49, 81):
            store.record_seen("bhojabedi", "2240", device_id, now)

        findings = _policy(registry, store).evaluate(now)[key]

        assert len(findings) == 1
        assert findings[0].device_id == 48
        assert findings[0].status == InactivityStatus.NEVER_RECEIVED
        assert findings[0].minutes_inactive == math.inf
        assert findings[0].label == "NEVER RECEIVED"

    def test_quiet_hours_return_nothing(self) -> None:
        registry = DeviceRegistry({PROJ: RegistryEntry(total_devices=5)})
        store = LivenessStore(registry)
        policy = _policy(registry, store)

        assert policy.is_suppressed(_at(20))
        assert policy.evaluate(_at(20)) == {}
        assert policy.evaluate(_at(10))[PROJ]
        # Unsuppressed evaluation still works at night.
        assert policy.find_inactive(_at(20))[PROJ]

    def test_unregistered_device_timeout_is_reported_once(self) -> None:
        registry = DeviceRegistry({PROJ: RegistryEntry(total_devices=2, expected_device_ids=(1,))})
        store = LivenessStore(registry)
        t0 = _at(10)
        store.record_seen("proj", "ncu", 1, t0)
        store.record_seen("proj", "ncu", 7, t0)
        store.record_seen("proj", "ncu", 8, t0 + timedelta(minutes=20))

        findings = _policy(registry, store).evaluate(t0 + timedelta(minutes=45))[PROJ]

        ids = [f.device_id for f in findings]
        assert sorted(ids) == [1, 7]
        assert len(ids) == len(set(ids))
        assert findings[0].label == "TIMEOUT (45 min)"

    def test_groups_only_seen_in_telemetry_are_evaluated(self) -> None:
        registry = DeviceRegistry({PROJ: RegistryEntry(total_devices=1)})
        store = LivenessStore(registry)
        t0 = _at(10)
        store.record_seen("proj", "ncu", 1, t0)
        store.record_seen("stray", "9", 4, t0)

        result = _policy(registry, store).evaluate(t0 + timedelta(minutes=40))

        assert list(result) == [PROJ, GroupKey("stray", "9")]
        assert _by_id(result[GroupKey("stray", "9")]) == {4: (InactivityStatus.TIMED_OUT, 40)}

    def test_healthy_groups_are_omitted(self) -> None:
        healthy = GroupKey("proj", "ok")
        registry = DeviceRegistry(
            {PROJ: RegistryEntry(total_devices=1), healthy: RegistryEntry(total_devices=1)}
        )
        store = LivenessStore(registry)
        now = _at(10)
        store.record_seen("proj", "ok", 1, now)

        result = _policy(registry, store).evaluate(now)

        assert healthy not in result
        assert PROJ in result

    def test_evaluation_does_not_mutate_store(self) -> None:
        registry = DeviceRegistry({PROJ: RegistryEntry(total_devices=3)})
        store = LivenessStore(registry)
        _policy(registry, store).evaluate(_at(10))
        assert len(store) == 0
