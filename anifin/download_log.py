"""
Bounded, observable download log owned by each downloader.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Callable, List

from .constants import LOG_RING_CAPACITY
from .events import LOG, EventBroadcaster
from .models import LogEntry

_STDLIB_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class DownloadLog:
    """Ring buffer of ``LogEntry`` records with live ``log`` events.

    Entries are also mirrored to a stdlib logger so the rotating log file
    keeps the full history after the ring drops old lines.
    """

    def __init__(self, logger: logging.Logger, capacity: int = LOG_RING_CAPACITY):
        self._entries: deque = deque(maxlen=capacity)
        self._events = EventBroadcaster([LOG])
        self._logger = logger

    def log(self, message: str, level: str = "info") -> LogEntry:
        entry = LogEntry(timestamp=datetime.now(), level=level, message=message)
        self._entries.append(entry)
        self._logger.log(_STDLIB_LEVELS[level], "[%s] %s", level.upper(), message)
        self._events.emit(LOG, {"entry": entry})
        return entry

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def on_log(self, callback: Callable[[LogEntry], None]) -> Callable:
        """Subscribe to new entries.  Returns a handle for :meth:`off_log`."""

        def _listener(data):
            callback(data["entry"])

        self._events.on(LOG, _listener)
        return _listener

    def off_log(self, handle: Callable) -> bool:
        return self._events.off(LOG, handle)
