"""Monitor service wiring the engine to MQTT, the notifier and the scheduler."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from tcuwatch._mqtt import ConnectionEvent, ConnectionState, MqttRuntime, RawMessage
from tcuwatch.config import MonitorConfig
from tcuwatch.engine import LivenessEngine
from tcuwatch.exceptions import TcuStartupError, TcuTransportError
from tcuwatch.notify import GatewayNotifier, NotificationDispatcher, Notifier
from tcuwatch.reporting.notices import (
    render_broker_error,
    render_broker_offline,
    render_startup_error,
    render_startup_notice,
)
from tcuwatch.scheduler import Scheduler
from tcuwatch.sinks import FileLogSink, LogSink

_logger = logging.getLogger(__name__)

RuntimeFactory = Callable[..., Any]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TcuMonitor:
    """Runs the whole monitor.

    Usage::

        async with TcuMonitor(config) as monitor:
            await monitor.wait_closed()
    """

    def __init__(
        self,
        config: MonitorConfig,
        *,
        notifier: Notifier | None = None,
        sink: LogSink | None = None,
        clock: Callable[[], datetime] = _utcnow,
        runtime_factory: RuntimeFactory = MqttRuntime,
    ) -> None:
        self._config = config
        self._clock = clock
        self._notifier: Notifier = notifier if notifier is not None else GatewayNotifier(config.gateway)
        self._sink = sink if sink is not None else FileLogSink(config.log_dir)
        self._dispatcher = NotificationDispatcher(
            self._notifier,
            config.targets,
            sink=self._sink,
            reporting_tz=config.reporting_zone,
            clock=clock,
        )
        self.engine = LivenessEngine(config, sink=self._sink, dispatcher=self._dispatcher, clock=clock)
        self.scheduler = Scheduler(clock=clock)
        self._runtime_factory = runtime_factory
        self._runtime: Any = None
        self._queue: asyncio.Queue[RawMessage] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TcuMonitor:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def queue(self) -> asyncio.Queue[RawMessage]:
        return self._queue

    def submit(self, message: RawMessage) -> None:
        """Queue a raw message for the engine (called on the loop thread)."""
        self._queue.put_nowait(message)

    async def start(self) -> None:
        """Bring up the notifier, the MQTT runtime, the consumer and the timers.

        Raises
        ------
        TcuStartupError
            If the notifier or the broker connection cannot be initialised.
        """
        loop = asyncio.get_running_loop()
        config = self._config

        _logger.info("Starting TCU monitor for %d NCUs", len(config.registry))
        await self._notifier.start()

        self.engine.notify(
            render_startup_notice(
                now=self._clock(),
                tz=config.monitoring_zone,
                projects=len(config.registry.projects),
                topics=len(config.broker.topics),
                timeout_minutes=config.timeout_minutes,
                check_interval_minutes=config.check_interval_minutes,
            )
        )

        self._consumer = asyncio.create_task(self.engine.consume(self._queue), name="tcuwatch-consumer")

        runtime = self._runtime_factory(
            loop=loop,
            on_message=self.submit,
            on_connection=self._on_connection,
            clock=self._clock,
        )
        _logger.info("Connecting to MQTT broker %s:%s", config.broker.host, config.broker.port)
        try:
            await loop.run_in_executor(None, runtime.start, config.broker)
        except TcuTransportError as exc:
            _logger.error("MQTT startup failed: %s", exc)
            self.engine.notify(
                render_startup_error(now=self._clock(), tz=config.monitoring_zone, error=str(exc)),
                urgent=True,
            )
            await self._shutdown_consumer()
            await self.engine.drain_notifications()
            await self._notifier.close()
            raise TcuStartupError(f"MQTT broker connection failed: {exc}") from exc
        self._runtime = runtime

        self.scheduler.every(
            "inactivity-check",
            timedelta(minutes=config.check_interval_minutes),
            self.engine.run_inactivity_check,
        )
        self.scheduler.every(
            "status-report",
            timedelta(minutes=config.status_interval_minutes),
            self.engine.run_status_report,
        )
        self.scheduler.daily_at(
            "daily-summary",
            config.daily_summary_at,
            config.monitoring_zone,
            self.engine.run_daily_summary,
        )
        self.scheduler.start()
        _logger.info(
            "TCU monitor running; alert groups: %s; emergency contacts: %d",
            ", ".join(config.targets.groups) or "-",
            len(config.targets.emergency_contacts),
        )

    def _on_connection(self, event: ConnectionEvent) -> None:
        tz = self._config.monitoring_zone
        if event.state == ConnectionState.DISCONNECTED:
            self.engine.notify(render_broker_offline(now=event.at, tz=tz, reason=event.reason), urgent=True)
        elif event.state == ConnectionState.CONNECT_FAILED:
            self.engine.notify(render_broker_error(now=event.at, tz=tz, error=event.reason), urgent=True)
        else:
            _logger.info("Subscribed to %d topics", len(self._config.broker.topics))

    async def _shutdown_consumer(self) -> None:
        consumer = self._consumer
        self._consumer = None
        if consumer is None:
            return
        consumer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer

    async def stop(self) -> None:
        """Stop timers and MQTT, then give in-flight notifications a chance to finish."""
        await self.scheduler.stop()
        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            try:
                await asyncio.get_running_loop().run_in_executor(None, runtime.stop)
            except Exception:
                _logger.debug("MQTT runtime stop failed", exc_info=True)
        await self._shutdown_consumer()
        await self.engine.drain_notifications()
        await self._notifier.close()
        self._closed.set()
        _logger.info("TCU monitor stopped")

    async def wait_closed(self) -> None:
        await self._closed.wait()
