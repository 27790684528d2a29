"""Tests for the SSH upload relay."""

from unittest.mock import MagicMock, patch

import pytest

from anifin.config import ConfigError
from anifin.exceptions import UploadError
from anifin.uploader import SSHUploader


def _completed(returncode=0, stdout="", stderr=""):
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


@pytest.fixture
def logs():
    return []


@pytest.fixture
def uploader(ssh_config, logs):
    return SSHUploader(ssh_config, log=lambda message, level: logs.append((level, message)))


class TestConstruction:
    def test_disabled_ssh_raises(self, test_config):
        with pytest.raises(ConfigError, match="SSH not configured"):
            SSHUploader(test_config)

    def test_target(self, uploader):
        assert uploader.target == "jelly@media.local"
        assert uploader.port == 2222


class TestUploadFile:
    def test_commands_and_cleanup(self, uploader, tmp_path):
        local = tmp_path / "Show - S01E01 - (German Dub).mp4"
        local.write_bytes(b"video")

        with patch("anifin.uploader.subprocess.run", return_value=_completed()) as run:
            remote = uploader.upload_file(str(local))

        assert remote == "/mnt/media/Show - S01E01 - (German Dub).mp4"
        mkdir_cmd = run.call_args_list[0][0][0]
        scp_cmd = run.call_args_list[1][0][0]
        assert mkdir_cmd == ["ssh", "-p", "2222", "jelly@media.local", 'mkdir -p "/mnt/media"']
        assert scp_cmd == ["scp", "-P", "2222", str(local), f"jelly@media.local:{remote}"]
        assert not local.exists()

    def test_keep_local_copy(self, uploader, tmp_path):
        local = tmp_path / "a.mp4"
        local.write_bytes(b"video")
        with patch("anifin.uploader.subprocess.run", return_value=_completed()):
            uploader.upload_file(str(local), delete_after=False)
        assert local.exists()

    def test_failure_keeps_local_copy(self, uploader, tmp_path, logs):
        local = tmp_path / "a.mp4"
        local.write_bytes(b"video")
        with patch(
            "anifin.uploader.subprocess.run",
            side_effect=[_completed(), _completed(1, stderr="Permission denied")],
        ):
            with pytest.raises(UploadError, match="scp failed"):
                uploader.upload_file(str(local))

        assert local.exists()
        assert ("warning", "ERROR: Permission denied") in logs

    def test_missing_binary(self, uploader, tmp_path):
        with patch("anifin.uploader.subprocess.run", side_effect=FileNotFoundError("ssh")):
            with pytest.raises(UploadError, match="Failed to start ssh"):
                uploader.upload_file(str(tmp_path / "a.mp4"))

    def test_stdout_forwarded_to_log(self, uploader, tmp_path, logs):
        local = tmp_path / "a.mp4"
        local.write_bytes(b"video")
        with patch("anifin.uploader.subprocess.run", return_value=_completed(stdout="ok\n")):
            uploader.upload_file(str(local))
        assert ("info", "ok") in logs


class TestUploadDirectory:
    def test_mirrors_relative_paths(self, uploader, tmp_path):
        series = tmp_path / "my-show"
        (series / "extras").mkdir(parents=True)
        (series / "ep1.mp4").write_bytes(b"1")
        (series / "extras" / "op.mp4").write_bytes(b"2")

        with patch("anifin.uploader.subprocess.run", return_value=_completed()) as run:
            uploaded = uploader.upload_directory(str(series))

        assert uploaded == ["/mnt/media/my-show/ep1.mp4", "/mnt/media/my-show/extras/op.mp4"]
        scp_targets = [c[0][0][-1] for c in run.call_args_list if c[0][0][0] == "scp"]
        assert scp_targets == [
            "jelly@media.local:/mnt/media/my-show/ep1.mp4",
            "jelly@media.local:/mnt/media/my-show/extras/op.mp4",
        ]
        assert not series.exists()

    def test_failure_leaves_local_tree(self, uploader, tmp_path):
        series = tmp_path / "my-show"
        series.mkdir()
        (series / "ep1.mp4").write_bytes(b"1")

        with patch("anifin.uploader.subprocess.run", return_value=_completed(255, stderr="refused")):
            with pytest.raises(UploadError):
                uploader.upload_directory(str(series))

        assert (series / "ep1.mp4").exists()

    def test_missing_directory(self, uploader, tmp_path):
        with pytest.raises(UploadError, match="Local directory not found"):
            uploader.upload_directory(str(tmp_path / "nope"))
