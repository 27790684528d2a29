"""
Plain data records shared by the queue, downloaders and providers.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .constants import LOG_LEVELS

# JSON clients send camelCase keys; map them onto field names.
_OPTION_ALIASES = {
    "outputPath": "output_path",
}
_OPTION_FIELDS = ("provider", "language", "quality", "format", "output_path", "filename")


@dataclass(frozen=True)
class DownloadOptions:
    """Per-job download hints.  Unset fields fall back to downloader defaults."""

    provider: Optional[str] = None
    language: Optional[str] = None
    quality: Optional[str] = None
    format: Optional[str] = None
    output_path: Optional[str] = None
    filename: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DownloadOptions":
        if not data:
            return cls()
        values = {}
        for key, value in data.items():
            name = _OPTION_ALIASES.get(key, key)
            if name in _OPTION_FIELDS and value not in (None, ""):
                values[name] = str(value)
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class Job:
    """A queued download request.  Consumed exactly once by the drain loop."""

    url: str
    options: DownloadOptions = field(default_factory=DownloadOptions)

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "options": self.options.to_dict()}


@dataclass(frozen=True)
class EpisodeRef:
    """Series / season / episode triple parsed from an episode URL."""

    series_title: str
    season: int
    episode: int

    @property
    def code(self) -> str:
        return f"S{self.season:02d}E{self.episode:02d}"


@dataclass
class LogEntry:
    """A single user-facing download log line."""

    timestamp: datetime
    level: str
    message: str

    def __post_init__(self) -> None:
        if self.level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.level}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "message": self.message,
        }


@dataclass
class VideoInfo:
    """Episode information resolved without downloading."""

    title: str
    url: str
    duration: Optional[float] = None
    thumbnail: Optional[str] = None
    quality: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QueueStatus:
    """Read-only snapshot of the orchestrator state."""

    is_processing: bool
    current_downloader: Optional[str]
    queue_length: int
    queue: List[Job] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_processing": self.is_processing,
            "current_downloader": self.current_downloader,
            "queue_length": self.queue_length,
            "queue": [job.to_dict() for job in self.queue],
        }
