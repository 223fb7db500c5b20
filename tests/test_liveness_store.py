from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from tcuwatch.models.registry import DeviceRegistry, GroupKey, RegistryEntry
from tcuwatch.state.events import TelemetryEvent
from tcuwatch.state.store import LivenessStore


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


def _registry() -> DeviceRegistry:
    return DeviceRegistry(
        {
            GroupKey("rabarika", "2172-B"): RegistryEntry(total_devices=3),
            GroupKey("bhojabedi", "2240"): RegistryEntry(total_devices=3, expected_device_ids=(48, 49, 50)),
        }
    )


def test_record_then_last_seen() -> None:
    store = LivenessStore()
    store.record_seen("p", "n", 5, _dt())
    assert store.last_seen("p", "n", 5) == _dt()


def test_later_record_overwrites() -> None:
    store = LivenessStore()
    t0 = _dt()
    t1 = t0 + timedelta(minutes=5)

    store.record_seen("p", "n", 5, t0)
    store.record_seen("p", "n", 5, t1)

    assert store.last_seen("p", "n", 5) == t1


def test_out_of_order_record_still_wins() -> None:
    store = LivenessStore()
    t0 = _dt()
    store.record_seen("p", "n", 5, t0 + timedelta(minutes=5))
    store.record_seen("p", "n", 5, t0)
    assert store.last_seen("p", "n", 5) == t0


def test_absent_device_has_no_record() -> None:
    store = LivenessStore(_registry())
    assert store.last_seen("rabarika", "2172-B", 1) is None
    assert store.last_seen("unknown", "ncu", 1) is None
    assert len(store) == 0
    assert store.groups() == []


def test_naive_timestamp_rejected() -> None:
    store = LivenessStore()
    with pytest.raises(ValueError):
        store.record_seen("p", "n", 1, datetime(2026, 1, 1))


def test_unregistered_device_is_recorded() -> None:
    store = LivenessStore(_registry())
    store.record_seen("bhojabedi", "2240", 7, _dt())
    assert store.last_seen("bhojabedi", "2240", 7) == _dt()
    assert store.seen_device_ids("bhojabedi", "2240") == {7}


def test_all_known_ids_union_registry_and_seen() -> None:
    store = LivenessStore(_registry())
    store.record_seen("bhojabedi", "2240", 7, _dt())
    store.record_seen("rabarika", "2172-B", 9, _dt())

    assert store.all_known_device_ids("bhojabedi", "2240") == {7, 48, 49, 50}
    # No explicit ids: 1..total.
    assert store.all_known_device_ids("rabarika", "2172-B") == {1, 2, 3, 9}
    assert store.all_known_device_ids("other", "x") == set()


def test_apply_event_and_groups() -> None:
    store = LivenessStore()
    store.apply(TelemetryEvent(project="p", ncu="n", device_id=3, received_at=_dt(), raw="#M1,3,x"))
    store.apply(TelemetryEvent(project="p", ncu="m", device_id=1, received_at=_dt()))

    assert store.last_seen("p", "n", 3) == _dt()
    assert store.groups() == [GroupKey("p", "n"), GroupKey("p", "m")]
    assert len(store) == 2
    assert store.snapshot()[GroupKey("p", "n")] == {3: _dt()}


def test_snapshot_is_a_copy() -> None:
    store = LivenessStore()
    store.record_seen("p", "n", 1, _dt())
    snap = store.snapshot()
    snap[GroupKey("p", "n")][2] = _dt()
    assert store.last_seen("p", "n", 2) is None


def test_event_naive_timestamp_becomes_utc() -> None:
    event = TelemetryEvent(project=" p ", ncu="n", device_id=1, received_at=datetime(2026, 1, 1))
    assert event.received_at.tzinfo is UTC
    assert event.project == "p"
    assert event.group == GroupKey("p", "n")
