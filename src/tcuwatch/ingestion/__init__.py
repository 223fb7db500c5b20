"""Ingestion layer.

Turns raw MQTT ``(topic, payload)`` pairs into :class:`TelemetryEvent`s.
"""

__all__: list[str] = []
