"""Bounded in-memory log buffer with explicit subscriptions.

A ``LogBuffer`` is owned by whoever creates it (normally the API's
``AppContext``); there is no module-level buffer.  ``subscribe()`` returns
a ``Subscription`` whose ``unsubscribe()`` detaches the listener.
"""

from __future__ import annotations

import collections
import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000


class LogLevel(str, Enum):
    LOG = "log"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogSource(str, Enum):
    WORKER = "worker"
    QUEUE = "queue"
    DO = "do"
    SYSTEM = "system"


class LogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:16])
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: LogLevel = LogLevel.LOG
    source: LogSource = LogSource.WORKER
    message: str
    data: Any = None


Listener = Callable[[LogEntry], None]


class Subscription:
    """Handle returned by ``LogBuffer.subscribe``."""

    def __init__(self, buffer: LogBuffer, listener: Listener) -> None:
        self._buffer = buffer
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._buffer._remove(self._listener)
            self._active = False


class LogBuffer:
    """Ring buffer of the most recent ``capacity`` log entries."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._entries: collections.deque[LogEntry] = collections.deque(maxlen=capacity)
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        message: str,
        *,
        level: LogLevel = LogLevel.LOG,
        source: LogSource = LogSource.WORKER,
        data: Any = None,
    ) -> LogEntry:
        entry = LogEntry(message=message, level=level, source=source, data=data)
        with self._lock:
            self._entries.append(entry)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(entry)
            except Exception:
                logger.exception("Log listener failed; unsubscribing it.")
                self._remove(listener)
        return entry

    def recent(self, limit: int = 100) -> list[LogEntry]:
        """Return up to *limit* newest entries, oldest first."""
        with self._lock:
            entries = list(self._entries)
        if limit <= 0:
            return []
        return entries[-limit:]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def subscribe(self, listener: Listener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)


_LEVEL_MAP: dict[int, LogLevel] = {
    logging.DEBUG: LogLevel.DEBUG,
    logging.INFO: LogLevel.INFO,
    logging.WARNING: LogLevel.WARN,
    logging.ERROR: LogLevel.ERROR,
    logging.CRITICAL: LogLevel.ERROR,
}


class LogBufferHandler(logging.Handler):
    """``logging.Handler`` that copies records into a ``LogBuffer``."""

    def __init__(self, buffer: LogBuffer, *, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._buffer.add(
                self.format(record),
                level=_LEVEL_MAP.get(record.levelno, LogLevel.LOG),
                source=LogSource.SYSTEM,
                data={"logger": record.name},
            )
        except Exception:
            self.handleError(record)
