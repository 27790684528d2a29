"""
AniFin: queue-driven episode downloader for Aniworld with optional
SSH relay to a media server.
"""

from .constants import APP_VERSION
from .download_manager import DownloadManager
from .models import DownloadOptions, Job

__version__ = APP_VERSION

__all__ = ["DownloadManager", "DownloadOptions", "Job", "__version__"]
