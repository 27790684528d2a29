"""
Site-specific downloaders.

Each downloader satisfies the ``Downloader`` contract and is registered
with the ``DownloadManager`` under a name; the manager never depends on
a concrete class.
"""

from .aniworld import AniworldDownloader
from .base import Downloader

__all__ = ["AniworldDownloader", "Downloader"]
