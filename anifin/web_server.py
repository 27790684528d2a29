"""
JSON API server for submitting downloads and following their progress.
"""

import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .constants import APP_NAME, APP_VERSION, DEFAULT_WEB_HOST, DEFAULT_WEB_PORT
from .download_manager import DownloadManager
from .routes import config_bp, downloads_bp
from .utils import setup_logger


class DownloadServer:
    """Flask app wrapping a ``DownloadManager``."""

    def __init__(
        self,
        config: Dict[str, Any],
        manager: DownloadManager,
        env_path: Optional[str] = None,
    ):
        """Initialise the Flask web server.

        Args:
            config: Loaded configuration dict.
            manager: Queue the API submits to.
            env_path: dotenv file reloaded by ``POST /api/config/reset``.
        """
        self.config = config
        self.manager = manager
        debug_mode = self.config.get("logging", {}).get("debug", False)
        self.logger = setup_logger("web_server", "web_server.log", debug=debug_mode)

        self.app = Flask(__name__)
        self.app.secret_key = os.environ.get("FLASK_SECRET_KEY", os.urandom(32).hex())
        self.app.config["server"] = self
        self.app.config["manager"] = manager
        self.app.config["env_path"] = env_path

        self._setup_error_handlers()
        self._register_blueprints()
        self.logger.info("DownloadServer initialized")

    def _register_blueprints(self):
        self.app.register_blueprint(downloads_bp)
        self.app.register_blueprint(config_bp)

        @self.app.route("/api/health")
        def api_health():
            return jsonify({"ok": True, "app": APP_NAME, "version": APP_VERSION})

    def _setup_error_handlers(self):
        @self.app.errorhandler(Exception)
        def _handle_exception(exc: Exception):
            # Let Flask handle HTTP exceptions (400, 404, etc.) normally
            if isinstance(exc, HTTPException):
                return exc
            self.logger.exception("Unhandled API error: %s", exc)
            return jsonify({"success": False, "error": "Internal Server Error"}), 500

    def run(self, host: str = None, port: int = None):
        web_cfg = self.config.get("web_server", {})
        host = host or web_cfg.get("host", DEFAULT_WEB_HOST)
        port = port or web_cfg.get("port", DEFAULT_WEB_PORT)
        self.logger.info("Starting web server on http://%s:%s", host, port)
        self.app.run(host=host, port=port, threaded=True)
