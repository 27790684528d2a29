"""
Video host implementations.

Adding a host means adding a class with ``name`` and
``extract_direct_link`` (and optionally ``extract_preview_image``) and
passing an instance to the downloader; nothing else changes.
"""

from .base import VideoProvider, supports_preview
from .voe import VoeProvider

__all__ = ["VideoProvider", "VoeProvider", "supports_preview"]
