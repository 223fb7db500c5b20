"""Threaded paho-mqtt runtime feeding raw status messages to asyncio."""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, cast

import paho.mqtt.client as mqtt

from tcuwatch.config import BrokerConfig
from tcuwatch.exceptions import TcuTransportError


@dataclass(frozen=True)
class RawMessage:
    """One PUBLISH as delivered by the broker, stamped on receipt."""

    topic: str
    payload: bytes
    received_at: datetime


class ConnectionState(enum.StrEnum):
    CONNECTED = "connected"
    CONNECT_FAILED = "connect_failed"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ConnectionEvent:
    state: ConnectionState
    reason: str
    at: datetime


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_client_id(config: BrokerConfig) -> str:
    if config.client_id:
        return config.client_id
    return f"tcuwatch-{uuid.uuid4().hex[:12]}"


class MqttRuntime:
    """Threaded paho-mqtt runtime that emits messages onto an asyncio loop.

    Both callbacks run on the loop thread; the paho network thread never
    touches monitor state.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[RawMessage], None],
        on_connection: Callable[[ConnectionEvent], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._on_connection = on_connection
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topics: tuple[str, ...] = ()

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def _emit_connection(self, state: ConnectionState, reason: Any) -> None:
        if self._on_connection is None:
            return
        event = ConnectionEvent(state=state, reason=str(reason), at=self._clock())
        self._loop.call_soon_threadsafe(self._on_connection, event)

    def handle_connect(self, client: Any, reason_code: Any) -> None:
        if reason_code.value != 0:
            self._logger.warning("MQTT connect failed: %s", reason_code)
            self._emit_connection(ConnectionState.CONNECT_FAILED, reason_code)
            return
        self._logger.info("Connected to MQTT broker")
        for topic in self._topics:
            self._logger.debug("MQTT subscribing topic=%s", topic)
            client.subscribe(topic, qos=0)
        self._emit_connection(ConnectionState.CONNECTED, reason_code)

    def handle_message(self, msg: Any) -> None:
        message = RawMessage(topic=msg.topic, payload=bytes(msg.payload), received_at=self._clock())
        self._logger.debug("Received PUBLISH topic=%s bytes=%d", message.topic, len(message.payload))
        self._loop.call_soon_threadsafe(self._on_message, message)

    def handle_disconnect(self, reason_code: Any) -> None:
        if not self._running:
            return
        self._logger.warning("MQTT disconnected: %s", reason_code)
        self._emit_connection(ConnectionState.DISCONNECTED, reason_code)

    def start(self, config: BrokerConfig) -> None:
        """Connect, subscribe to ``config.topics`` and start the network loop.

        paho reconnects on its own after a dropped connection.

        Raises
        ------
        TcuTransportError
            If the initial connection cannot be opened or the broker address
            is rejected.
        """
        self.stop()
        client_id = build_client_id(config)
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topics=%s client_id=%s",
            config.host,
            config.port,
            config.topics,
            client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=client_id,
        )
        client.enable_logger(self._logger)
        if config.username:
            client.username_pw_set(config.username, config.password)
        if config.tls:
            client.tls_set()
        delay = max(int(config.reconnect_delay), 1)
        client.reconnect_delay_set(min_delay=delay, max_delay=delay * 12)

        self._topics = tuple(config.topics)

        def on_connect(c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
            self.handle_connect(c, reason_code)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self.handle_message(msg)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self.handle_disconnect(reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(config.host, config.port, keepalive=config.keepalive)
        except (OSError, ValueError) as exc:
            raise TcuTransportError(
                f"Cannot connect to MQTT broker {config.host}:{config.port}: {exc}",
                endpoint=f"{config.host}:{config.port}",
            ) from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topics = ()

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
