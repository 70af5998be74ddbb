"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Structured log buffer for handler code.

Handlers call ``log.info(...)`` and friends; entries are buffered with RFC
5424 severities so the server can flush them as ``notifications/message``
events, and each entry is mirrored to the stdlib ``mctx.handlers`` logger.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("mctx.handlers")

# RFC 5424: lower number = higher severity.
LEVELS: dict[str, int] = {
    "emergency": 0,
    "alert": 1,
    "critical": 2,
    "error": 3,
    "warning": 4,
    "notice": 5,
    "info": 6,
    "debug": 7,
}

_STDLIB_LEVELS: dict[str, int] = {
    "emergency": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "notice": logging.INFO,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

MAX_LOG_BUFFER_SIZE = 10_000


@dataclass(frozen=True, slots=True)
class LogEntry:
    level: str
    data: Any

    def to_dict(self) -> dict[str, Any]:
        return {"type": "log", "level": self.level, "data": self.data}


def should_log(message_level: str, client_level: str) -> bool:
    """Return True if ``message_level`` is at least as severe as ``client_level``.

    Unknown levels on either side always log.
    """
    message = LEVELS.get(message_level)
    client = LEVELS.get(client_level)
    if message is None or client is None:
        return True
    return message <= client


class LogBuffer:
    """Bounded FIFO buffer of log entries with a minimum level filter."""

    def __init__(self, *, max_size: int = MAX_LOG_BUFFER_SIZE, level: str = "debug") -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._entries: deque[LogEntry] = deque(maxlen=max_size)
        self._lock = threading.Lock()
        self._level = level

    @property
    def level(self) -> str:
        return self._level

    def set_level(self, level: str) -> None:
        if level not in LEVELS:
            raise ValueError(
                f'Invalid log level: "{level}". Must be one of: {", ".join(LEVELS)}'
            )
        self._level = level

    def emit(self, level: str, data: Any) -> LogEntry | None:
        if not should_log(level, self._level):
            return None
        entry = LogEntry(level=level, data=data)
        with self._lock:
            self._entries.append(entry)
        logger.log(_STDLIB_LEVELS.get(level, logging.INFO), "%s", data)
        return entry

    def snapshot(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def drain(self) -> list[LogEntry]:
        """Return all buffered entries and empty the buffer."""
        with self._lock:
            entries = list(self._entries)
            self._entries.clear()
        return entries

    def __len__(self) -> int:
        return len(self._entries)


default_buffer = LogBuffer()


class HandlerLog:
    """Severity-named helpers bound to one ``LogBuffer``."""

    def __init__(self, buffer: LogBuffer) -> None:
        self.buffer = buffer

    def debug(self, data: Any) -> LogEntry | None:
        return self.buffer.emit("debug", data)

    def info(self, data: Any) -> LogEntry | None:
        return self.buffer.emit("info", data)

    def notice(self, data: Any) -> LogEntry | None:
        return self.buffer.emit("notice", data)

    def warning(self, data: Any) -> LogEntry | None:
        return self.buffer.emit("warning", data)

    def error(self, data: Any) -> LogEntry | None:
        return self.buffer.emit("error", data)

    def critical(self, data: Any) -> LogEntry | None:
        return self.buffer.emit("critical", data)

    def alert(self, data: Any) -> LogEntry | None:
        return self.buffer.emit("alert", data)

    def emergency(self, data: Any) -> LogEntry | None:
        return self.buffer.emit("emergency", data)


log = HandlerLog(default_buffer)
