"""Runtime configuration routes (/api/config)."""

from flask import Blueprint, current_app, jsonify, request

from ..config import ConfigError, reset_config, update_section

config_bp = Blueprint("config", __name__, url_prefix="/api/config")


def _server():
    return current_app.config["server"]


def _get_section(section):
    return jsonify({"success": True, "data": dict(_server().config.get(section, {}))})


def _put_section(section):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "error": "JSON object required"}), 400

    server = _server()
    try:
        updated = update_section(server.config, section, data)
    except ConfigError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    server.logger.info("Updated %s config: %s", section, ", ".join(sorted(data)))
    return jsonify({"success": True, "data": updated})


@config_bp.route("/app")
def api_get_app_config():
    return _get_section("app")


@config_bp.route("/app", methods=["PUT"])
def api_update_app_config():
    """Merge new values into the app section."""
    return _put_section("app")


@config_bp.route("/ssh")
def api_get_ssh_config():
    return _get_section("ssh")


@config_bp.route("/ssh", methods=["PUT"])
def api_update_ssh_config():
    """Merge new values into the ssh section."""
    return _put_section("ssh")


@config_bp.route("/reset", methods=["POST"])
def api_reset_config():
    """Discard runtime edits and reload the ``.env`` file."""
    server = _server()
    try:
        reset_config(server.config, current_app.config.get("env_path"))
    except ConfigError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    server.logger.info("Config reset to .env defaults")
    return jsonify({"success": True, "message": "Config reset to .env defaults"})
