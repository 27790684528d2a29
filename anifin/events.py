"""
Named-topic publish/subscribe used by the queue and the downloaders.

Each owner (manager, download log) holds its own broadcaster; there is no
global bus.  Topics form a closed set so a typo fails loudly instead of
silently never firing.
"""

import threading
from typing import Any, Callable, Dict, FrozenSet, Iterable, List

from .utils import setup_logger

QUEUED = "queued"
QUEUE_START = "queue_start"
DOWNLOAD_START = "download_start"
DOWNLOAD_COMPLETE = "download_complete"
DOWNLOAD_ERROR = "download_error"
QUEUE_COMPLETE = "queue_complete"
QUEUE_CLEARED = "queue_cleared"
LOG = "log"

MANAGER_TOPICS: FrozenSet[str] = frozenset(
    {
        QUEUED,
        QUEUE_START,
        DOWNLOAD_START,
        DOWNLOAD_COMPLETE,
        DOWNLOAD_ERROR,
        QUEUE_COMPLETE,
        QUEUE_CLEARED,
        LOG,
    }
)

Listener = Callable[[Dict[str, Any]], None]


class EventBroadcaster:
    """Fan out payload dicts to the listeners of a topic.

    Listeners added after an event fired only see later events.  A
    listener that raises is logged and skipped; the remaining listeners
    and the publisher carry on.
    """

    def __init__(self, topics: Iterable[str]):
        self._topics = frozenset(topics)
        self._listeners: Dict[str, List[Listener]] = {t: [] for t in self._topics}
        self._lock = threading.Lock()
        self._logger = setup_logger("events", "anifin.log")

    @property
    def topics(self) -> FrozenSet[str]:
        return self._topics

    def on(self, topic: str, listener: Listener) -> None:
        self._check(topic)
        with self._lock:
            self._listeners[topic].append(listener)

    def off(self, topic: str, listener: Listener) -> bool:
        """Remove one registration of *listener*; returns False if absent."""
        self._check(topic)
        with self._lock:
            try:
                self._listeners[topic].remove(listener)
            except ValueError:
                return False
        return True

    def listener_count(self, topic: str) -> int:
        self._check(topic)
        with self._lock:
            return len(self._listeners[topic])

    def emit(self, topic: str, payload: Dict[str, Any] = None) -> None:
        self._check(topic)
        with self._lock:
            listeners = list(self._listeners[topic])
        data = payload if payload is not None else {}
        for listener in listeners:
            try:
                listener(data)
            except Exception as e:
                self._logger.warning("Listener for '%s' failed: %s", topic, e)

    def _check(self, topic: str) -> None:
        if topic not in self._topics:
            raise ValueError(f"Unknown event topic: '{topic}'")
