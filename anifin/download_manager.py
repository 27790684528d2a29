"""
Serial download queue.

Jobs are drained one at a time against a registered downloader so that
yt-dlp and the upload relay never run twice concurrently.  Exactly one
drain loop may be active per manager; the ``is_processing`` flag is read
and written under a single lock together with the pending deque.

Each drain carries an increasing ``drain_id`` in its ``queue_start`` and
``queue_complete`` payloads.  Events are emitted outside the lock, so a
finished drain's ``queue_complete`` may reach listeners after the next
drain's ``queue_start``; the id pairs them.
"""

import threading
from collections import deque
from typing import Any, Callable, Dict, List, Optional

from .events import (
    DOWNLOAD_COMPLETE,
    DOWNLOAD_ERROR,
    DOWNLOAD_START,
    LOG,
    MANAGER_TOPICS,
    QUEUE_CLEARED,
    QUEUE_COMPLETE,
    QUEUE_START,
    QUEUED,
    EventBroadcaster,
)
from .downloaders.base import Downloader
from .exceptions import DownloaderNotFoundError, InvalidUrlError
from .models import DownloadOptions, Job, QueueStatus
from .utils import setup_logger


class DownloadManager:
    """FIFO job queue with a single-flight drain loop and lifecycle events.

    Usage::

        manager = DownloadManager()
        manager.register_downloader("aniworld", downloader)
        manager.on("download_complete", print)
        manager.enqueue(url, DownloadOptions(language="German Sub"))
    """

    def __init__(self, default_downloader: Optional[str] = None, *, auto_start: bool = True):
        """
        Args:
            default_downloader: Downloader that ``enqueue`` drains against
                when no drain has designated one.  Defaults to the first
                registered downloader.
            auto_start: Start a background drain from ``enqueue``.
        """
        self.default_downloader = default_downloader
        self.auto_start = auto_start
        self.logger = setup_logger("download_manager", "anifin.log")

        self._downloaders: Dict[str, Downloader] = {}
        self._queue: deque = deque()
        self._lock = threading.Lock()
        self._is_processing = False
        self._current_downloader: Optional[str] = None
        self._drain_seq = 0
        self._drain_thread: Optional[threading.Thread] = None
        self._events = EventBroadcaster(MANAGER_TOPICS)

    # ── Registry ─────────────────────────────────────────────────

    def register_downloader(self, name: str, downloader: Downloader) -> None:
        """Register *downloader* and relay its log entries as ``log`` events."""
        self._downloaders[name] = downloader
        if self.default_downloader is None:
            self.default_downloader = name

        on_log = getattr(downloader, "on_log", None)
        if callable(on_log):

            def _relay(entry, _name=name):
                payload = entry.to_dict()
                payload.update(downloader=_name, queue_length=self.queue_length())
                self._events.emit(LOG, payload)

            on_log(_relay)

    def get_downloader(self, name: str) -> Optional[Downloader]:
        return self._downloaders.get(name)

    # ── Queue operations ─────────────────────────────────────────

    def enqueue(self, url: str, options: Optional[DownloadOptions] = None) -> Job:
        """Append a job and start draining if idle.

        Raises:
            InvalidUrlError: If *url* is empty.
        """
        if not url or not url.strip():
            raise InvalidUrlError("URL is required")
        if isinstance(options, dict):
            options = DownloadOptions.from_dict(options)
        job = Job(url=url.strip(), options=options or DownloadOptions())

        target = None
        drain_id = 0
        with self._lock:
            self._queue.append(job)
            queue_length = len(self._queue)
            if self.auto_start and not self._is_processing:
                candidate = self._current_downloader or self.default_downloader
                if candidate in self._downloaders:
                    drain_id = self._claim(candidate)
                    target = candidate

        self.logger.info("Queued %s (queue length %d)", job.url, queue_length)
        self._events.emit(QUEUED, {"url": job.url, "queue_length": queue_length})

        if target is not None:
            self._start_background_drain(target, drain_id)
        return job

    def drain(self, downloader_name: Optional[str] = None) -> bool:
        """Run every pending job, in order, on the named downloader.

        Returns immediately with ``False`` if a drain is already active.

        Raises:
            DownloaderNotFoundError: If no downloader matches the name.
        """
        name = downloader_name or self.default_downloader
        if not name or name not in self._downloaders:
            raise DownloaderNotFoundError(str(name))

        with self._lock:
            if self._is_processing:
                return False
            drain_id = self._claim(name)

        self._drain_loop(name, drain_id)
        return True

    def clear(self) -> int:
        """Drop every pending job.  The in-flight job keeps running."""
        with self._lock:
            removed = len(self._queue)
            self._queue.clear()
        self.logger.info("Queue cleared (%d job(s) removed)", removed)
        self._events.emit(QUEUE_CLEARED, {"removed": removed})
        return removed

    def cancel_current(self) -> bool:
        """Kill hook: terminate the in-flight transfer, if the downloader allows it."""
        with self._lock:
            name = self._current_downloader
        if name is None:
            return False
        terminate = getattr(self._downloaders.get(name), "terminate", None)
        if not callable(terminate):
            return False
        terminated = bool(terminate())
        if terminated:
            self.logger.warning("Terminated in-flight download on %s", name)
        return terminated

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the background drain thread.  Returns True once it has finished."""
        thread = self._drain_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # ── Status ───────────────────────────────────────────────────

    def status(self) -> QueueStatus:
        with self._lock:
            return QueueStatus(
                is_processing=self._is_processing,
                current_downloader=self._current_downloader,
                queue_length=len(self._queue),
                queue=list(self._queue),
            )

    def is_running(self) -> bool:
        with self._lock:
            return self._is_processing

    def queue_length(self) -> int:
        with self._lock:
            return len(self._queue)

    def get_queue(self) -> List[Job]:
        with self._lock:
            return list(self._queue)

    def get_all_logs(self) -> List[Dict[str, Any]]:
        """Log entries of every downloader, oldest first, tagged with its name."""
        entries = []
        for name, downloader in self._downloaders.items():
            get_logs = getattr(downloader, "get_logs", None)
            if not callable(get_logs):
                continue
            for entry in get_logs():
                entries.append((entry.timestamp, name, entry))
        entries.sort(key=lambda item: item[0])
        return [dict(entry.to_dict(), downloader=name) for _, name, entry in entries]

    # ── Events ───────────────────────────────────────────────────

    def on(self, event: str, callback: Callable[[Dict[str, Any]], None]) -> None:
        self._events.on(event, callback)

    def off(self, event: str, callback: Callable[[Dict[str, Any]], None]) -> bool:
        return self._events.off(event, callback)

    # ── Internals ────────────────────────────────────────────────

    def _claim(self, name: str) -> int:
        # Caller holds self._lock.
        self._is_processing = True
        self._current_downloader = name
        self._drain_seq += 1
        return self._drain_seq

    def _drain_loop(self, name: str, drain_id: int) -> None:
        downloader = self._downloaders[name]
        finished = False
        try:
            queue_length = self.queue_length()
            self.logger.info("Queue started on %s with %d job(s)", name, queue_length)
            self._events.emit(
                QUEUE_START,
                {"downloader": name, "queue_length": queue_length, "drain_id": drain_id},
            )

            while True:
                with self._lock:
                    if not self._queue:
                        self._is_processing = False
                        self._current_downloader = None
                        finished = True
                        break
                    job = self._queue.popleft()
                    remaining = len(self._queue)

                self._run_job(downloader, job, remaining)
        finally:
            if not finished:
                with self._lock:
                    self._is_processing = False
                    self._current_downloader = None

        self.logger.info("Queue complete on %s", name)
        self._events.emit(QUEUE_COMPLETE, {"downloader": name, "drain_id": drain_id})

    def _run_job(self, downloader: Downloader, job: Job, remaining: int) -> None:
        self._events.emit(DOWNLOAD_START, {"url": job.url, "remaining": remaining})
        try:
            result = downloader.download(job.url, job.options)
        except Exception as e:
            self.logger.error("Download failed for %s: %s", job.url, e)
            self._events.emit(
                DOWNLOAD_ERROR,
                {"url": job.url, "error": str(e), "remaining": self.queue_length()},
            )
            return

        self.logger.info("Download complete for %s", job.url)
        self._events.emit(
            DOWNLOAD_COMPLETE,
            {"url": job.url, "result": result, "remaining": self.queue_length()},
        )

    def _start_background_drain(self, name: str, drain_id: int) -> None:
        thread = threading.Thread(
            target=self._drain_in_background,
            args=(name, drain_id),
            daemon=True,
            name="download-drain",
        )
        self._drain_thread = thread
        thread.start()

    def _drain_in_background(self, name: str, drain_id: int) -> None:
        try:
            self._drain_loop(name, drain_id)
        except Exception as e:
            self.logger.error("Queue processing error: %s", e)
