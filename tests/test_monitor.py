"""Tests for the monitor service wiring, with a fake MQTT runtime."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from tcuwatch._mqtt import ConnectionEvent, ConnectionState, RawMessage
from tcuwatch.config import BrokerConfig, MonitorConfig, NotificationTargets
from tcuwatch.exceptions import TcuStartupError, TcuTransportError
from tcuwatch.models.registry import DeviceRegistry
from tcuwatch.monitor import TcuMonitor

TOPIC = "jsm-pub/rabarika_2172-B/STATUS"


class _FakeRuntime:
    def __init__(self, *, fail: bool = False, **kwargs: Any) -> None:
        self.loop = kwargs["loop"]
        self.on_message = kwargs["on_message"]
        self.on_connection = kwargs["on_connection"]
        self.clock = kwargs["clock"]
        self.fail = fail
        self.config: BrokerConfig | None = None
        self.stopped = False

    def start(self, config: BrokerConfig) -> None:
        self.config = config
        if self.fail:
            raise TcuTransportError("connection refused", endpoint=f"{config.host}:{config.port}")

    def stop(self) -> None:
        self.stopped = True


class _Factory:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.runtimes: list[_FakeRuntime] = []

    def __call__(self, **kwargs: Any) -> _FakeRuntime:
        runtime = _FakeRuntime(fail=self.fail, **kwargs)
        self.runtimes.append(runtime)
        return runtime


def _config() -> MonitorConfig:
    return MonitorConfig(
        registry=DeviceRegistry.from_mapping({"rabarika": {"2172-B": {"totalTCUs": 2}}}),
        broker=BrokerConfig(host="broker.test", topics=(TOPIC,)),
        targets=NotificationTargets(groups=("NCU Updates",), emergency_contacts=("+910000000001",)),
    )


@pytest.mark.asyncio
async def test_monitor_lifecycle(notifier, sink, clock) -> None:
    factory = _Factory()
    monitor = TcuMonitor(_config(), notifier=notifier, sink=sink, clock=clock, runtime_factory=factory)

    await monitor.start()
    try:
        assert notifier.started
        assert monitor.scheduler.is_running
        assert [job.name for job in monitor.scheduler.jobs] == ["inactivity-check", "status-report", "daily-summary"]

        runtime = factory.runtimes[0]
        assert runtime.config is not None
        assert runtime.config.host == "broker.test"

        await monitor.engine.drain_notifications()
        assert notifier.groups[0][1].startswith("*TCU Monitor Started*")
        assert "• MQTT Topics: 1" in notifier.groups[0][1]
        assert notifier.contacts == []

        runtime.on_message(RawMessage(topic=TOPIC, payload=b"#M1,2,OK", received_at=clock.now))
        await asyncio.wait_for(monitor.queue.join(), timeout=1.0)
        assert monitor.engine.store.last_seen("rabarika", "2172-B", 2) == clock.now

        runtime.on_connection(
            ConnectionEvent(state=ConnectionState.DISCONNECTED, reason="Keep alive timeout", at=clock.now)
        )
        await monitor.engine.drain_notifications()
        _contacts, text = notifier.contacts[-1]
        assert text.startswith("*MQTT CLIENT OFFLINE*")
        assert "Reason: Keep alive timeout" in text
    finally:
        await monitor.stop()

    assert factory.runtimes[0].stopped
    assert notifier.closed
    assert not monitor.scheduler.is_running
    await asyncio.wait_for(monitor.wait_closed(), timeout=1.0)


@pytest.mark.asyncio
async def test_connect_failure_event_sends_error_notice(notifier, sink, clock) -> None:
    async with TcuMonitor(
        _config(), notifier=notifier, sink=sink, clock=clock, runtime_factory=_Factory()
    ) as monitor:
        monitor._on_connection(  # type: ignore[attr-defined]
            ConnectionEvent(state=ConnectionState.CONNECT_FAILED, reason="Bad user name or password", at=clock.now)
        )
        await monitor.engine.drain_notifications()

    assert notifier.contacts[-1][1].startswith("*MQTT CONNECTION ERROR*")


@pytest.mark.asyncio
async def test_broker_failure_becomes_startup_error(notifier, sink, clock) -> None:
    monitor = TcuMonitor(_config(), notifier=notifier, sink=sink, clock=clock, runtime_factory=_Factory(fail=True))

    with pytest.raises(TcuStartupError, match="connection refused"):
        await monitor.start()

    assert notifier.closed
    assert not monitor.scheduler.is_running
    texts = [text for _groups, text in notifier.groups]
    assert texts[0].startswith("*TCU Monitor Started*")
    assert texts[-1].startswith("*SYSTEM STARTUP ERROR*")
    assert notifier.contacts[-1][1].startswith("*SYSTEM STARTUP ERROR*")
