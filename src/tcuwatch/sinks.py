"""Append-only log streams for communications and reports."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

_logger = logging.getLogger(__name__)

_UNSAFE_STREAM_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class LogSink(Protocol):
    """Destination for already timestamped report lines."""

    def append(self, stream: str, line: str) -> None: ...


class FileLogSink:
    """Writes each stream to ``<directory>/<stream>.log``."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, stream: str) -> Path:
        safe = _UNSAFE_STREAM_CHARS.sub("_", stream).strip("._") or "stream"
        return self._directory / f"{safe}.log"

    def append(self, stream: str, line: str) -> None:
        path = self.path_for(stream)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(f"{line}\n")


class MemoryLogSink:
    """Keeps lines in memory; used by ``--dry-run`` and tests."""

    def __init__(self) -> None:
        self.streams: dict[str, list[str]] = {}

    def append(self, stream: str, line: str) -> None:
        self.streams.setdefault(stream, []).append(line)
        _logger.debug("[%s] %s", stream, line)

    def lines(self, stream: str) -> list[str]:
        return list(self.streams.get(stream, []))
