"""Liveness-tracking and alerting engine.

The engine owns the device registry, the liveness store and the
inactivity policy. It is the only writer of the store (through
:meth:`LivenessEngine.handle_message`) and runs the three report
generators on demand. It never blocks on I/O: notifications are handed to
the dispatcher as background tasks.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from tcuwatch._constants import STREAM_INACTIVE, STREAM_STATUS, communications_stream
from tcuwatch._mqtt import RawMessage
from tcuwatch.config import MonitorConfig
from tcuwatch.exceptions import PayloadDecodeError, TcuDecodeError, TopicDecodeError
from tcuwatch.ingestion.decode import decode_message
from tcuwatch.models.registry import DeviceRegistry
from tcuwatch.notify import DispatchResult, NotificationDispatcher
from tcuwatch.reporting._format import log_stamp
from tcuwatch.reporting.daily import DailySummary, build_daily_summary, render_daily_summary
from tcuwatch.reporting.inactivity import (
    InactivityAlert,
    build_inactivity_alert,
    inactivity_log_lines,
    render_inactivity_alert,
)
from tcuwatch.reporting.status import StatusReport, build_status_report, render_status_report
from tcuwatch.sinks import LogSink
from tcuwatch.state.events import TelemetryEvent
from tcuwatch.state.policy import InactivityPolicy
from tcuwatch.state.store import LivenessStore

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LivenessEngine:
    """Ingests telemetry and produces inactivity alerts and health reports."""

    def __init__(
        self,
        config: MonitorConfig,
        *,
        sink: LogSink,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._sink = sink
        self._dispatcher = dispatcher
        self._clock = clock
        self._monitoring_tz = config.monitoring_zone
        self._reporting_tz = config.reporting_zone
        self._store = LivenessStore(config.registry)
        self._policy = InactivityPolicy(
            config.registry,
            self._store,
            timeout_minutes=config.timeout_minutes,
            quiet_hours=config.quiet_hours,
            timezone=self._monitoring_tz,
        )
        self._started_at = clock()
        self._pending: set[asyncio.Task[list[DispatchResult]]] = set()
        self.accepted = 0
        self.dropped = 0

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def registry(self) -> DeviceRegistry:
        return self._config.registry

    @property
    def store(self) -> LivenessStore:
        return self._store

    @property
    def policy(self) -> InactivityPolicy:
        return self._policy

    @property
    def started_at(self) -> datetime:
        return self._started_at

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def handle_message(
        self,
        topic: str,
        payload: bytes | str,
        received_at: datetime | None = None,
    ) -> TelemetryEvent | None:
        """Decode one message and record it; malformed messages are dropped."""
        stamp = received_at or self._clock()
        try:
            event = decode_message(topic, payload, received_at=stamp, timezone=self._monitoring_tz)
        except TopicDecodeError:
            self.dropped += 1
            _logger.warning("Invalid topic format: %s", topic)
            return None
        except PayloadDecodeError as exc:
            self.dropped += 1
            _logger.warning("Invalid message format on %s: %r (%s)", topic, exc.payload, exc)
            return None
        except TcuDecodeError as exc:
            self.dropped += 1
            _logger.warning("Invalid telemetry on %s: %s", topic, exc)
            return None

        self._store.apply(event)
        self.accepted += 1
        _logger.debug("TCU-%s seen on %s raw=%s", event.device_id, event.group, event.raw)
        self._write(
            communications_stream(event.project, event.ncu),
            [f"TCU-{event.device_id} communication received at {log_stamp(event.received_at, self._reporting_tz)}"],
            at=event.received_at,
        )
        return event

    async def consume(self, queue: asyncio.Queue[RawMessage]) -> None:
        """Apply queued messages until cancelled; one bad message never stops the loop."""
        while True:
            message = await queue.get()
            try:
                self.handle_message(message.topic, message.payload, message.received_at)
            except Exception:
                _logger.exception("Failed to process message on %s", message.topic)
            finally:
                queue.task_done()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def run_inactivity_check(self) -> InactivityAlert | None:
        """Evaluate inactivity, log and send an urgent alert if anything is silent."""
        now = self._clock()
        if self._policy.is_suppressed(now):
            _logger.info("Inactivity checks paused during quiet hours (%s)", self._policy.quiet_hours.describe())
            return None

        alert = build_inactivity_alert(
            self._policy.evaluate(now),
            now=now,
            timeout_minutes=self._config.timeout_minutes,
            check_interval_minutes=self._config.check_interval_minutes,
        )
        if alert is None:
            _logger.info("All TCUs are active")
            return None

        self._write(STREAM_INACTIVE, inactivity_log_lines(alert, self._reporting_tz), at=now)
        _logger.warning("%d inactive TCUs across %d NCUs", alert.total_inactive, len(alert.groups))
        self.notify(render_inactivity_alert(alert, self._monitoring_tz), urgent=True)
        return alert

    def run_status_report(self) -> StatusReport:
        """Write the full status report; runs regardless of quiet hours."""
        now = self._clock()
        report = build_status_report(
            self.registry,
            self._store,
            now=now,
            timeout_minutes=self._config.timeout_minutes,
            started_at=self._started_at,
            interval_minutes=self._config.status_interval_minutes,
        )
        self._write(STREAM_STATUS, render_status_report(report, self._reporting_tz), at=now)
        _logger.info(
            "Status report generated - Active: %d/%d (%.1f%%)",
            report.tally.active,
            report.tally.total,
            report.tally.active_percentage,
        )
        return report

    def run_daily_summary(self) -> DailySummary:
        """Send the daily summary to the alert groups only."""
        summary = build_daily_summary(
            self.registry,
            self._store,
            now=self._clock(),
            timeout_minutes=self._config.timeout_minutes,
            check_interval_minutes=self._config.check_interval_minutes,
            quiet_hours=self._policy.quiet_hours.describe(),
        )
        self.notify(render_daily_summary(summary, self._monitoring_tz), groups_only=True)
        return summary

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _write(self, stream: str, lines: Iterable[str], *, at: datetime) -> None:
        stamp = log_stamp(at, self._reporting_tz)
        for line in lines:
            self._sink.append(stream, f"[{stamp}] {line}")

    def notify(
        self,
        text: str,
        *,
        urgent: bool = False,
        groups_only: bool = False,
    ) -> asyncio.Task[list[DispatchResult]] | None:
        """Send *text* in the background; returns the task, or ``None`` without a dispatcher."""
        if self._dispatcher is None:
            _logger.debug("No dispatcher configured; notification dropped")
            return None
        task = asyncio.create_task(self._dispatcher.dispatch(text, urgent=urgent, groups_only=groups_only))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain_notifications(self, timeout: float = 10.0) -> None:
        """Wait (bounded) for in-flight notifications."""
        pending = list(self._pending)
        if not pending:
            return
        _done, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            _logger.warning("Abandoning %d in-flight notifications", len(still_pending))
            for task in still_pending:
                task.cancel()
