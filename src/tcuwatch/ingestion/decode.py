"""Status topic and payload decoding.

Topics look like ``jsm-pub/rabarika_2172-B/STATUS``: the second segment
joins project and NCU with the last ``_`` (or, failing that, the last
``-``), so NCU names such as ``2172-B`` survive intact.

Payloads look like ``#M1,42,...``; only the device id in the second field
is interpreted.
"""

from __future__ import annotations

from datetime import datetime, tzinfo

from pydantic import ValidationError

from tcuwatch._constants import PAYLOAD_MIN_FIELDS, PAYLOAD_PREFIX, TOPIC_SEPARATORS
from tcuwatch.exceptions import PayloadDecodeError, TcuDecodeError, TopicDecodeError
from tcuwatch.state.events import TelemetryEvent


def parse_topic(topic: str) -> tuple[str, str]:
    """Return ``(project, ncu)`` encoded in *topic*.

    Raises
    ------
    TopicDecodeError
        If the topic has no composite segment or it cannot be split.
    """
    parts = topic.split("/")
    if len(parts) < 2:
        raise TopicDecodeError(f"Topic has no project/NCU segment: {topic!r}", topic=topic)

    composite = parts[1]
    for separator in TOPIC_SEPARATORS:
        if separator in composite:
            project, _, ncu = composite.rpartition(separator)
            project, ncu = project.strip(), ncu.strip()
            if not project or not ncu:
                break
            return project, ncu
    raise TopicDecodeError(f"Cannot split project and NCU from {composite!r}", topic=topic)


def _is_decimal(text: str) -> bool:
    # str.isdigit() also accepts non-ASCII digits.
    return bool(text) and text.isascii() and text.isdigit()


def parse_payload(payload: bytes | str) -> tuple[int, str]:
    """Return ``(device_id, trimmed_text)`` for a status line.

    Raises
    ------
    PayloadDecodeError
        If the prefix, field count or device id is wrong.
    """
    if isinstance(payload, bytes):
        text = payload.decode("ascii", errors="replace").strip()
    else:
        text = payload.strip()

    if not text.startswith(PAYLOAD_PREFIX):
        raise PayloadDecodeError(f"Payload does not start with {PAYLOAD_PREFIX!r}", payload=text)

    fields = text.split(",")
    if len(fields) < PAYLOAD_MIN_FIELDS:
        raise PayloadDecodeError(
            f"Payload has {len(fields)} fields, expected at least {PAYLOAD_MIN_FIELDS}",
            payload=text,
        )

    device_field = fields[1].strip()
    if not _is_decimal(device_field):
        raise PayloadDecodeError(f"Device id is not a decimal integer: {device_field!r}", payload=text)
    return int(device_field), text


def decode_message(
    topic: str,
    payload: bytes | str,
    *,
    received_at: datetime,
    timezone: tzinfo | None = None,
) -> TelemetryEvent:
    """Decode one inbound message.

    The event is stamped with *received_at* (converted to *timezone* when
    given); the payload carries no timestamp of its own.
    """
    project, ncu = parse_topic(topic)
    device_id, text = parse_payload(payload)
    stamp = received_at.astimezone(timezone) if timezone is not None else received_at
    try:
        return TelemetryEvent(project=project, ncu=ncu, device_id=device_id, received_at=stamp, raw=text)
    except ValidationError as exc:
        raise TcuDecodeError(f"Invalid telemetry on {topic!r}: {exc}") from exc
