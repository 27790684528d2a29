"""Tests for the command line entry point."""

import json
from unittest.mock import patch

import pytest

from anifin.download_manager import DownloadManager
from anifin.downloaders import AniworldDownloader
from anifin.exceptions import ExtractionError
from anifin.main import DEFAULT_DOWNLOADER, build_manager, main
from anifin.models import VideoInfo

EPISODE = "https://aniworld.to/anime/stream/my-show/staffel-1/episode-1"


class StubDownloader:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []
        self.info_calls = []

    def download(self, url, options=None):
        self.calls.append((url, options))
        if self.fail:
            raise ExtractionError("voe URL not found for language: German Dub")
        return "/downloads/my show/ep.mp4"

    def get_video_info(self, url, provider=None, language=None):
        self.info_calls.append((url, provider, language))
        if self.fail:
            raise ExtractionError("voe URL not found for language: German Dub")
        return VideoInfo(title="my show S1E1", url=url)


def _stub_manager(stub):
    manager = DownloadManager(auto_start=False)
    manager.register_downloader(DEFAULT_DOWNLOADER, stub)
    return manager


@pytest.fixture
def env_args(tmp_path):
    return ["--env-file", str(tmp_path / "missing.env")]


def test_build_manager_wires_aniworld(test_config):
    manager = build_manager(test_config, auto_start=False)

    downloader = manager.get_downloader(DEFAULT_DOWNLOADER)
    assert isinstance(downloader, AniworldDownloader)
    assert downloader.get_provider().name == "voe"
    assert manager.default_downloader == DEFAULT_DOWNLOADER
    assert manager.auto_start is False


class TestDownloadCommand:
    def test_success(self, env_args, capsys):
        stub = StubDownloader()
        with patch("anifin.main.build_manager", return_value=_stub_manager(stub)), patch(
            "anifin.main.signal.signal"
        ):
            code = main(env_args + ["download", EPISODE, "--language", "German Sub", "--format", "mkv"])

        assert code == 0
        url, options = stub.calls[0]
        assert url == EPISODE
        assert options.language == "German Sub"
        assert options.format == "mkv"
        assert "Saved: /downloads/my show/ep.mp4" in capsys.readouterr().out

    def test_failure_returns_nonzero(self, env_args, capsys):
        with patch(
            "anifin.main.build_manager", return_value=_stub_manager(StubDownloader(fail=True))
        ), patch("anifin.main.signal.signal"):
            code = main(env_args + ["download", EPISODE])

        assert code == 1
        assert "voe URL not found" in capsys.readouterr().err

    def test_manager_built_without_auto_start(self, env_args):
        with patch(
            "anifin.main.build_manager", return_value=_stub_manager(StubDownloader())
        ) as build, patch("anifin.main.signal.signal"):
            main(env_args + ["download", EPISODE])
        assert build.call_args[1] == {"auto_start": False}


class TestInfoCommand:
    def test_prints_json(self, env_args, capsys):
        with patch("anifin.main.build_manager", return_value=_stub_manager(StubDownloader())):
            code = main(env_args + ["info", EPISODE])

        assert code == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed["title"] == "my show S1E1"

    def test_error(self, env_args, capsys):
        with patch(
            "anifin.main.build_manager", return_value=_stub_manager(StubDownloader(fail=True))
        ):
            code = main(env_args + ["info", EPISODE])
        assert code == 1
        assert "Error:" in capsys.readouterr().err

    def test_forwards_provider_and_language(self, env_args):
        stub = StubDownloader()
        with patch("anifin.main.build_manager", return_value=_stub_manager(stub)):
            main(env_args + ["info", EPISODE, "--provider", "voe", "--language", "English Sub"])

        assert stub.info_calls == [(EPISODE, "voe", "English Sub")]


def test_serve_runs_server(env_args):
    with patch("anifin.main.build_manager") as build, patch(
        "anifin.web_server.DownloadServer"
    ) as server_cls:
        code = main(env_args + ["serve", "--port", "8123"])

    assert code == 0
    server_cls.assert_called_once()
    assert server_cls.call_args[1] == {"env_path": env_args[1]}
    server_cls.return_value.run.assert_called_once_with(host=None, port=8123)
    assert build.call_args[1] == {}


def test_config_error_exit_code(env_args, monkeypatch, capsys):
    monkeypatch.setenv("PORT", "not-a-number")
    assert main(env_args + ["info", EPISODE]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])
    assert exc_info.value.code == 0
    assert "0.2.0" in capsys.readouterr().out
