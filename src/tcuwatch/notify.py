"""Outbound notifications.

The chat platform sits behind an HTTP messaging gateway. Every send is
best effort: one failed recipient is recorded and the batch continues.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from typing import Any, Literal, Protocol

import aiohttp

from tcuwatch._constants import DEFAULT_COUNTRY_CODE, NATIONAL_NUMBER_DIGITS, STREAM_DISPATCH_ERRORS
from tcuwatch.config import GatewayConfig, NotificationTargets
from tcuwatch.exceptions import TcuDispatchError, TcuStartupError, TcuTransportError, TcuWatchError
from tcuwatch.reporting._format import log_stamp
from tcuwatch.sinks import LogSink

_logger = logging.getLogger(__name__)

ChatKind = Literal["group", "contact"]

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(number: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Strip everything but digits and prefix bare national numbers with *country_code*.

    Raises
    ------
    TcuDispatchError
        If fewer than ten digits remain.
    """
    digits = _NON_DIGITS.sub("", str(number))
    if len(digits) < NATIONAL_NUMBER_DIGITS:
        raise TcuDispatchError(f"Invalid phone number: {number!r}", recipient=str(number))
    if len(digits) == NATIONAL_NUMBER_DIGITS:
        return f"{country_code}{digits}"
    return digits


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one message to one recipient."""

    recipient: str
    kind: ChatKind
    success: bool
    error: str | None = None


class Notifier(Protocol):
    """Structural interface of a message channel."""

    async def start(self) -> None: ...

    async def close(self) -> None: ...

    async def send_to_groups(self, groups: Sequence[str], text: str) -> list[DispatchResult]: ...

    async def send_to_contacts(self, contacts: Sequence[str], text: str) -> list[DispatchResult]: ...


class GatewayNotifier:
    """Sends chat messages through the messaging gateway's HTTP API.

    ``GET /status`` must answer ``{"ready": true}`` before any message is
    sent. Each message is a ``POST /messages`` with
    ``{"chat": "group"|"contact", "to": ..., "text": ...}``.
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http = session
        self._sleep = sleep
        self._send_lock = asyncio.Lock()

    async def __aenter__(self) -> GatewayNotifier:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"content-type": "application/json; charset=UTF-8"}
        if self._config.token:
            headers["authorization"] = f"Bearer {self._config.token}"
        return headers

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http is None:
            raise TcuWatchError("Notifier not started. Call 'await notifier.start()' first")
        return self._http

    async def start(self) -> None:
        """Open the HTTP session and check the gateway is ready.

        Raises
        ------
        TcuStartupError
            If the gateway is unreachable or reports it is not ready.
        """
        if self._http is None:
            self._http = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._config.timeout))
        try:
            await self._check_ready()
        except TcuStartupError:
            await self.close()
            raise
        _logger.info("Messaging gateway ready at %s", self._config.base_url)

    async def _check_ready(self) -> None:
        session = self._require_session()
        url = f"{self._config.base_url}/status"
        try:
            async with session.get(url, headers=self._headers()) as resp:
                if resp.status != 200:
                    raise TcuStartupError(f"Messaging gateway status check returned HTTP {resp.status}")
                body = await resp.json(content_type=None)
        except aiohttp.ClientError as exc:
            raise TcuStartupError(f"Messaging gateway unreachable at {url}: {exc}") from exc
        except ValueError as exc:
            raise TcuStartupError(f"Messaging gateway at {url} returned invalid JSON: {exc}") from exc
        if not isinstance(body, dict) or not body.get("ready"):
            raise TcuStartupError(f"Messaging gateway at {url} is not ready: {body!r}")

    async def close(self) -> None:
        if not self._external_session and self._http is not None:
            await self._http.close()
        self._http = None

    async def _post(self, kind: ChatKind, recipient: str, text: str) -> None:
        session = self._require_session()
        endpoint = "/messages"
        payload = {"chat": kind, "to": recipient, "text": text}
        try:
            async with session.post(
                f"{self._config.base_url}{endpoint}",
                json=payload,
                headers=self._headers(),
            ) as resp:
                body_text = await resp.text()
                if resp.status != 200:
                    raise TcuDispatchError(
                        f"HTTP {resp.status} sending to {kind} {recipient!r}: {body_text[:200]}",
                        recipient=recipient,
                    )
        except aiohttp.ClientError as exc:
            raise TcuTransportError(
                f"Sending to {kind} {recipient!r} failed: {exc}",
                endpoint=endpoint,
            ) from exc

    async def _send_many(self, kind: ChatKind, recipients: Sequence[str], text: str) -> list[DispatchResult]:
        results: list[DispatchResult] = []
        async with self._send_lock:
            for index, recipient in enumerate(recipients):
                if index and self._config.inter_message_delay > 0:
                    await self._sleep(self._config.inter_message_delay)
                try:
                    address = recipient
                    if kind == "contact":
                        address = normalize_phone_number(recipient, self._config.country_code)
                    await self._post(kind, address, text)
                except (TcuDispatchError, TcuTransportError) as exc:
                    _logger.warning("Message to %s %r failed: %s", kind, recipient, exc)
                    results.append(DispatchResult(recipient=recipient, kind=kind, success=False, error=str(exc)))
                    continue
                _logger.debug("Message sent to %s %r", kind, recipient)
                results.append(DispatchResult(recipient=recipient, kind=kind, success=True))
        return results

    async def send_to_groups(self, groups: Sequence[str], text: str) -> list[DispatchResult]:
        return await self._send_many("group", groups, text)

    async def send_to_contacts(self, contacts: Sequence[str], text: str) -> list[DispatchResult]:
        return await self._send_many("contact", contacts, text)


class LoggingNotifier:
    """Notifier that only logs messages (``--dry-run``)."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger
        self.sent: list[tuple[ChatKind, str, str]] = []

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def _record(self, kind: ChatKind, recipients: Sequence[str], text: str) -> list[DispatchResult]:
        results = []
        for recipient in recipients:
            self.sent.append((kind, recipient, text))
            self._logger.info("[dry-run] to %s %r:\n%s", kind, recipient, text)
            results.append(DispatchResult(recipient=recipient, kind=kind, success=True))
        return results

    async def send_to_groups(self, groups: Sequence[str], text: str) -> list[DispatchResult]:
        return self._record("group", groups, text)

    async def send_to_contacts(self, contacts: Sequence[str], text: str) -> list[DispatchResult]:
        return self._record("contact", contacts, text)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class NotificationDispatcher:
    """Routes a message to the configured groups and emergency contacts.

    Groups receive every message when group delivery is enabled.
    Emergency contacts receive urgent messages, every message when
    ``send_to_emergency_contacts`` is set, or every message when group
    delivery is disabled. Failures go to the ``dispatch_errors`` stream.
    """

    def __init__(
        self,
        notifier: Notifier,
        targets: NotificationTargets,
        *,
        sink: LogSink,
        reporting_tz: tzinfo = UTC,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._notifier = notifier
        self._targets = targets
        self._sink = sink
        self._reporting_tz = reporting_tz
        self._clock = clock

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def _record_failure(self, message: str) -> None:
        stamp = log_stamp(self._clock(), self._reporting_tz)
        self._sink.append(STREAM_DISPATCH_ERRORS, f"[{stamp}] {message}")

    async def dispatch(self, text: str, *, urgent: bool = False, groups_only: bool = False) -> list[DispatchResult]:
        targets = self._targets
        results: list[DispatchResult] = []
        try:
            if targets.use_groups and targets.groups:
                results.extend(await self._notifier.send_to_groups(list(targets.groups), text))
            wants_contacts = urgent or targets.send_to_emergency_contacts or not targets.use_groups
            if not groups_only and wants_contacts and targets.emergency_contacts:
                results.extend(await self._notifier.send_to_contacts(list(targets.emergency_contacts), text))
        except TcuWatchError as exc:
            _logger.error("Notification dispatch failed: %s", exc)
            self._record_failure(f"Failed to send notification: {exc}")
            return results

        for result in results:
            if not result.success:
                self._record_failure(f"Failed to send to {result.kind} {result.recipient}: {result.error}")
        return results
