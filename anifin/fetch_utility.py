"""
yt-dlp child-process runner.

Streams the utility's output into the owning downloader's log while the
transfer runs and exposes a kill hook for the in-flight process.
"""

import re
import subprocess
import threading
from typing import Callable, List, Optional, Sequence

from .constants import (
    SUPPORTED_OUTPUT_FORMATS,
    YTDLP_BINARY,
    YTDLP_CONCURRENT_FRAGMENTS,
    YTDLP_TERMINATE_GRACE_SECONDS,
)
from .exceptions import FetchUtilityError

_HEIGHT_RE = re.compile(r"^(\d{3,4})p?$", re.IGNORECASE)


def build_format_args(quality: Optional[str] = None, output_format: Optional[str] = None) -> List[str]:
    """Translate quality / format hints into yt-dlp arguments.

    ``quality`` accepts ``best``, ``worst``, a height such as ``720p`` or
    a raw yt-dlp format selector.  ``output_format`` is one of
    ``mp4``, ``mkv`` or ``mp3``.

    Raises:
        ValueError: For an unsupported output format.
    """
    args: List[str] = []

    if quality:
        q = quality.strip()
        height = _HEIGHT_RE.match(q)
        if q.lower() == "best":
            args += ["-f", "bestvideo+bestaudio/best"]
        elif q.lower() == "worst":
            args += ["-f", "worst"]
        elif height:
            h = height.group(1)
            args += ["-f", f"bestvideo[height<={h}]+bestaudio/best[height<={h}]"]
        else:
            args += ["-f", q]

    if output_format:
        fmt = output_format.lower()
        if fmt not in SUPPORTED_OUTPUT_FORMATS:
            raise ValueError(
                f"Unsupported format '{output_format}' "
                f"(expected one of: {', '.join(sorted(SUPPORTED_OUTPUT_FORMATS))})"
            )
        if fmt == "mp3":
            args += ["-x", "--audio-format", "mp3"]
        else:
            args += ["--merge-output-format", fmt]

    return args


class YtDlpRunner:
    """Run yt-dlp for one direct link at a time."""

    def __init__(
        self,
        log: Callable[[str, str], None],
        binary: str = YTDLP_BINARY,
        concurrent_fragments: int = YTDLP_CONCURRENT_FRAGMENTS,
    ):
        """
        Args:
            log: ``log(message, level)`` callback receiving progress lines.
            binary: Executable name or path.
            concurrent_fragments: Value for ``--concurrent-fragments``.
        """
        self.binary = binary
        self.concurrent_fragments = concurrent_fragments
        self._log = log
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()

    def build_command(
        self, url: str, output_path: str, extra_args: Sequence[str] = ()
    ) -> List[str]:
        return [
            self.binary,
            url,
            "-o",
            output_path,
            "--no-playlist",
            *extra_args,
            "--concurrent-fragments",
            str(self.concurrent_fragments),
            "--newline",
        ]

    def run(self, url: str, output_path: str, extra_args: Sequence[str] = ()) -> None:
        """Download *url* to *output_path*; blocks until the process exits.

        Raises:
            FetchUtilityError: If the binary cannot be started or exits
                with a non-zero code.
        """
        cmd = self.build_command(url, output_path, extra_args)

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise FetchUtilityError(f"Failed to start {self.binary}: {e}") from e

        with self._lock:
            self._process = process

        stderr_thread = threading.Thread(
            target=self._pump_stderr, args=(process.stderr,), daemon=True, name="ytdlp-stderr"
        )
        stderr_thread.start()

        exited = False
        try:
            for line in process.stdout:
                self._handle_stdout_line(line)
            process.wait()
            exited = True
        except Exception as e:
            raise FetchUtilityError(f"{self.binary} output could not be read: {e}") from e
        finally:
            # The child must be gone before the next episode starts.
            if not exited:
                self._stop(process)
            stderr_thread.join()
            with self._lock:
                self._process = None

        if process.returncode != 0:
            raise FetchUtilityError(
                f"{self.binary} exited with code {process.returncode}", process.returncode
            )

    def terminate(self) -> bool:
        """Kill the running process, if any.  Returns True if one was signalled."""
        with self._lock:
            process = self._process
        if process is None or process.poll() is not None:
            return False
        process.terminate()
        return True

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._process is not None

    def _handle_stdout_line(self, line: str) -> None:
        output = line.strip()
        if not output:
            return
        if "[download]" in output:
            self._log(output, "info")
        elif "Merger" in output:
            self._log("Merging fragments...", "info")

    def _stop(self, process: subprocess.Popen) -> None:
        process.terminate()
        try:
            process.wait(timeout=YTDLP_TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def _pump_stderr(self, stream) -> None:
        try:
            for line in stream:
                error = line.strip()
                if error:
                    self._log(error, "warning")
        except (OSError, ValueError) as e:
            self._log(f"Stopped reading {self.binary} stderr: {e}", "warning")
