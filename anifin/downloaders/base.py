"""Capability contract the queue relies on."""

from typing import Optional, Protocol, runtime_checkable

from ..models import DownloadOptions, VideoInfo


@runtime_checkable
class Downloader(Protocol):
    """One streaming site's page grammar plus its fetch pipeline.

    Implementations may also offer ``on_log(callback)`` and
    ``get_logs()`` for live log relaying, and ``terminate()`` as a kill
    hook for the in-flight transfer.  The queue looks these up with
    ``getattr`` and works without them.
    """

    def download(self, url: str, options: Optional[DownloadOptions] = None) -> str:
        """Download everything *url* refers to; returns the output path."""
        ...

    def get_video_info(
        self, url: str, provider: Optional[str] = None, language: Optional[str] = None
    ) -> VideoInfo:
        ...

