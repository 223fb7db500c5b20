"""Custom exception hierarchy for tcuwatch."""

from __future__ import annotations


class TcuWatchError(Exception):
    """Base exception for all tcuwatch errors."""


class TcuConfigError(TcuWatchError):
    """Invalid or missing configuration."""


class TcuDecodeError(TcuWatchError):
    """Inbound MQTT message could not be decoded.

    Decode failures are terminal for the message: it is dropped and
    logged, never retried.
    """


class TopicDecodeError(TcuDecodeError):
    """Topic does not carry a ``<project><sep><ncu>`` segment."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class PayloadDecodeError(TcuDecodeError):
    """Payload is not a ``#M1,<device>,...`` status line."""

    def __init__(self, message: str, *, payload: str = "") -> None:
        self.payload = payload
        super().__init__(message)


class TcuTransportError(TcuWatchError):
    """Connectivity failure talking to the broker or the messaging gateway."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class TcuDispatchError(TcuWatchError):
    """A single notification could not be delivered to one recipient."""

    def __init__(self, message: str, *, recipient: str = "") -> None:
        self.recipient = recipient
        super().__init__(message)


class TcuStartupError(TcuWatchError):
    """A collaborator failed to initialise before monitoring started.

    This is the only error that is allowed to stop the process.
    """
