"""
Flask Blueprints.

Each blueprint reaches the shared ``DownloadManager`` through
``current_app.config['manager']`` and the server itself through
``current_app.config['server']``.
"""

from .config_bp import config_bp
from .downloads_bp import downloads_bp

__all__ = ["config_bp", "downloads_bp"]
