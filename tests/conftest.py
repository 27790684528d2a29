"""
Test fixtures and configuration for pytest
"""

from unittest.mock import MagicMock

import pytest

# Environment variables read by load_config(); cleared so a developer's
# shell or .env never leaks into test expectations.
_CONFIG_ENV_VARS = (
    "DOWNLOAD_PATH",
    "AUTO_UPLOAD",
    "DEFAULT_LANGUAGE",
    "FALLBACK_LANGUAGE",
    "DEFAULT_PROVIDER",
    "SSH_ENABLED",
    "SSH_HOST",
    "SSH_PORT",
    "SSH_USERNAME",
    "SSH_REMOTE_PATH",
    "HOST",
    "PORT",
    "LOG_DEBUG",
)


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path, monkeypatch):
    """Auto-use guard: keep log files and config env vars inside the test."""
    monkeypatch.setenv("ANIFIN_LOG_DIR", str(tmp_path / "logs"))
    for var in _CONFIG_ENV_VARS:
        # setenv first so values written later by load_dotenv are undone too
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    yield


@pytest.fixture
def test_config(tmp_path):
    """Provide test configuration"""
    return {
        "app": {
            "download_path": str(tmp_path / "downloads"),
            "auto_upload": False,
            "default_language": "German Dub",
            "fallback_language": "German Sub",
            "default_provider": "voe",
        },
        "ssh": {
            "enabled": False,
            "host": "",
            "port": 22,
            "username": "",
            "remote_path": "/mnt/media",
        },
        "web_server": {"host": "127.0.0.1", "port": 3000},
        "logging": {"debug": False},
    }


@pytest.fixture
def ssh_config(test_config):
    test_config["ssh"].update(
        {"enabled": True, "host": "media.local", "port": 2222, "username": "jelly"}
    )
    return test_config


def make_response(text: str = "", url: str = "", status_code: int = 200):
    """Build a MagicMock standing in for ``requests.Response``."""
    resp = MagicMock()
    resp.text = text
    resp.url = url
    resp.status_code = status_code
    resp.raise_for_status.return_value = None
    return resp


class FakeSession:
    """Minimal ``requests.Session`` replacement routing URLs to canned pages.

    ``routes`` maps a URL to either a response or an exception instance.
    Every call is recorded in ``calls`` as ``(url, headers)``.
    """

    def __init__(self, routes=None):
        self.routes = routes if routes is not None else {}
        self.calls = []
        self.max_redirects = 30

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers or {}))
        result = self.routes.get(url)
        if result is None:
            import requests

            raise requests.ConnectionError(f"no route for {url}")
        if isinstance(result, Exception):
            raise result
        return result


class FakeProvider:
    """Video provider returning a predictable direct link."""

    def __init__(self, name="voe", preview=None, fail_for=()):
        self.name = name
        self.preview = preview
        self.fail_for = set(fail_for)
        self.calls = []

    def extract_direct_link(self, embed_url):
        self.calls.append(embed_url)
        if embed_url in self.fail_for:
            from anifin.exceptions import ExtractionError

            raise ExtractionError(f"decode failed for {embed_url}")
        return f"https://cdn.example/{embed_url.rsplit('/', 1)[-1]}.m3u8"

    def extract_preview_image(self, embed_url):
        if self.preview is None:
            from anifin.exceptions import ExtractionError

            raise ExtractionError("no preview")
        return self.preview


@pytest.fixture
def fake_provider():
    return FakeProvider()
