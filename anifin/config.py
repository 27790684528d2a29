"""
Configuration loading and validation for AniFin.

Values come from a ``.env`` file (via python-dotenv) and the process
environment.  Parsing happens once at startup; components receive the
resulting dict instead of reading the environment themselves.
"""

import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .constants import (
    DEFAULT_DOWNLOAD_PATH,
    DEFAULT_LANGUAGE,
    DEFAULT_PROVIDER,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_REMOTE_PATH,
    DEFAULT_WEB_HOST,
    DEFAULT_WEB_PORT,
    FALLBACK_LANGUAGE,
    LANGUAGE_CODES,
)

# Required top-level sections and the keys that must exist within them.
_REQUIRED_SCHEMA: Dict[str, List[str]] = {
    "app": ["download_path", "auto_upload", "default_language", "fallback_language"],
    "ssh": ["enabled", "host", "port", "username", "remote_path"],
}

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

# Sections that may be edited at runtime, with the type of each key.
_EDITABLE_FIELDS: Dict[str, Dict[str, type]] = {
    "app": {
        "download_path": str,
        "auto_upload": bool,
        "default_language": str,
        "fallback_language": str,
    },
    "ssh": {
        "enabled": bool,
        "host": str,
        "port": int,
        "username": str,
        "remote_path": str,
    },
}

_KEY_ALIASES = {
    "downloadPath": "download_path",
    "autoUpload": "auto_upload",
    "defaultLanguage": "default_language",
    "fallbackLanguage": "fallback_language",
    "remotePath": "remote_path",
}


class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


def load_config(env_path: Optional[str] = None, *, override: bool = False) -> Dict[str, Any]:
    """
    Load configuration from a ``.env`` file and the environment.

    Args:
        env_path: Path to the dotenv file. Defaults to ``.env`` in the
            current working directory.
        override: If ``True``, values in the file replace variables that
            are already set in the environment.

    Returns:
        Nested configuration dictionary.

    Raises:
        ConfigError: If a numeric setting cannot be parsed.
    """
    load_dotenv(env_path or os.path.join(os.getcwd(), ".env"), override=override)

    return {
        "app": {
            "download_path": _env("DOWNLOAD_PATH", DEFAULT_DOWNLOAD_PATH),
            "auto_upload": _env_bool("AUTO_UPLOAD", False),
            "default_language": _env("DEFAULT_LANGUAGE", DEFAULT_LANGUAGE),
            "fallback_language": _env("FALLBACK_LANGUAGE", FALLBACK_LANGUAGE),
            "default_provider": _env("DEFAULT_PROVIDER", DEFAULT_PROVIDER),
        },
        "ssh": {
            "enabled": _env_bool("SSH_ENABLED", False),
            "host": _env("SSH_HOST", ""),
            "port": _env_int("SSH_PORT", DEFAULT_SSH_PORT),
            "username": _env("SSH_USERNAME", ""),
            "remote_path": _env("SSH_REMOTE_PATH", DEFAULT_SSH_REMOTE_PATH),
        },
        "web_server": {
            "host": _env("HOST", DEFAULT_WEB_HOST),
            "port": _env_int("PORT", DEFAULT_WEB_PORT),
        },
        "logging": {
            "debug": _env_bool("LOG_DEBUG", False),
        },
    }


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate a config dict against the required schema.

    Returns:
        A list of human-readable error strings.  Empty means valid.
    """
    errors: List[str] = []

    for section, keys in _REQUIRED_SCHEMA.items():
        if section not in config:
            errors.append(f"Missing required config section: '{section}'")
            continue
        for key in keys:
            if key not in config[section]:
                errors.append(f"Missing required key '{key}' in config section '{section}'")

    app = config.get("app", {})
    for key in ("default_language", "fallback_language"):
        label = app.get(key)
        if label and label not in LANGUAGE_CODES:
            errors.append(
                f"app.{key} '{label}' is not a known language "
                f"(expected one of: {', '.join(LANGUAGE_CODES)})"
            )

    ssh = config.get("ssh", {})
    port = ssh.get("port")
    if isinstance(port, int) and port <= 0:
        errors.append(f"ssh.port must be positive, got {port}")
    if ssh.get("enabled") and not (ssh.get("host") and ssh.get("username")):
        errors.append("SSH upload is enabled but ssh.host or ssh.username is empty")

    return errors


def update_section(config: Dict[str, Any], section: str, values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge *values* into ``config[section]`` in place.

    The section dict keeps its identity, so every component holding the
    config sees the change on its next read.  camelCase keys are accepted.

    Returns:
        A copy of the updated section.

    Raises:
        ConfigError: For an unknown section or key, or a value of the wrong type.
    """
    fields = _EDITABLE_FIELDS.get(section)
    if fields is None:
        raise ConfigError(f"Unknown config section: '{section}'")

    updates: Dict[str, Any] = {}
    for raw_key, value in values.items():
        key = _KEY_ALIASES.get(raw_key, raw_key)
        if key not in fields:
            raise ConfigError(f"Unknown key '{raw_key}' in config section '{section}'")
        updates[key] = _coerce(f"{section}.{key}", fields[key], value)

    for key in ("default_language", "fallback_language"):
        label = updates.get(key)
        if label is not None and label not in LANGUAGE_CODES:
            raise ConfigError(f"Unknown language: {label}")
    if "port" in updates and updates["port"] <= 0:
        raise ConfigError(f"{section}.port must be positive, got {updates['port']}")

    config.setdefault(section, {}).update(updates)
    return dict(config[section])


def reset_config(config: Dict[str, Any], env_path: Optional[str] = None) -> Dict[str, Any]:
    """Reload every section from the ``.env`` file, replacing runtime edits in place."""
    fresh = load_config(env_path, override=True)
    for section, values in fresh.items():
        current = config.setdefault(section, {})
        current.clear()
        current.update(values)
    return config


def is_ssh_configured(config: Dict[str, Any]) -> bool:
    """Return True when SSH upload is enabled and has a target host and user."""
    ssh = config.get("ssh", {})
    return bool(ssh.get("enabled") and ssh.get("host") and ssh.get("username"))


# ── Private helpers ──────────────────────────────────────────────


def _env(name: str, default: str) -> str:
    value = os.environ.get(name)
    return value if value else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got '{value}'") from exc


def _coerce(name: str, expected: type, value: Any) -> Any:
    # bool is an int subclass; reject True/False for numeric keys
    if expected is int and isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if expected is int and isinstance(value, str):
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigError(f"{name} must be an integer, got '{value}'") from exc
    if not isinstance(value, expected):
        raise ConfigError(f"{name} must be of type {expected.__name__}, got {value!r}")
    return value
