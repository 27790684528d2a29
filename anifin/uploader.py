"""
Upload relay: mirrors finished downloads onto the media server via the
system ``ssh`` and ``scp`` binaries.
"""

import posixpath
import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import ConfigError, is_ssh_configured
from .exceptions import UploadError
from .utils import setup_logger, to_posix


class SSHUploader:
    """Copy files and directory trees to ``user@host:remote_path``.

    Each call is independent: connection details come from the config
    passed to the constructor and no session is kept open.
    """

    def __init__(self, config: Dict[str, Any], log: Optional[Callable[[str, str], None]] = None):
        """
        Args:
            config: Full application config (uses the ``ssh`` section).
            log: Optional ``log(message, level)`` callback for command output.

        Raises:
            ConfigError: If SSH upload is disabled or incomplete.
        """
        if not is_ssh_configured(config):
            raise ConfigError("SSH not configured. Check .env or SSH is disabled.")
        ssh = config["ssh"]
        self.host = ssh["host"]
        self.port = int(ssh.get("port", 22))
        self.username = ssh["username"]
        self.remote_path = to_posix(ssh.get("remote_path", ""))
        self._log = log
        self.logger = setup_logger("uploader", "upload.log")

    @property
    def target(self) -> str:
        return f"{self.username}@{self.host}"

    def upload_file(
        self, local_path: str, remote_path: Optional[str] = None, delete_after: bool = True
    ) -> str:
        """Copy one file.  Returns the remote path it was written to."""
        target_path = to_posix(
            remote_path or posixpath.join(self.remote_path, Path(local_path).name)
        )
        remote_dir = posixpath.dirname(target_path)
        escaped_dir = remote_dir.replace('"', '\\"')

        self._exec(["ssh", "-p", str(self.port), self.target, f'mkdir -p "{escaped_dir}"'])
        self._exec(["scp", "-P", str(self.port), str(local_path), f"{self.target}:{target_path}"])
        self.logger.info("Uploaded %s -> %s", local_path, target_path)

        if delete_after:
            self.delete_local(local_path)
        return target_path

    def upload_directory(self, local_dir: str, remote_dir: Optional[str] = None) -> List[str]:
        """Mirror every file under *local_dir*, then delete the local tree.

        The local copy is only removed after all transfers succeeded.
        """
        root = Path(local_dir)
        if not root.is_dir():
            raise UploadError(f"Local directory not found: {local_dir}")

        target_dir = to_posix(remote_dir or posixpath.join(self.remote_path, root.name))
        uploaded = []
        for file_path in sorted(p for p in root.rglob("*") if p.is_file()):
            rel = file_path.relative_to(root).as_posix()
            uploaded.append(
                self.upload_file(str(file_path), posixpath.join(target_dir, rel), delete_after=False)
            )

        self.delete_local(local_dir)
        return uploaded

    def delete_local(self, path: str) -> None:
        p = Path(path)
        if p.is_dir():
            shutil.rmtree(p, ignore_errors=True)
        elif p.exists():
            p.unlink()

    def _exec(self, cmd: List[str]) -> None:
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise UploadError(f"Failed to start {cmd[0]}: {e}") from e

        if self._log:
            for line in result.stdout.splitlines():
                if line.strip():
                    self._log(line.strip(), "info")
            for line in result.stderr.splitlines():
                if line.strip():
                    self._log(f"ERROR: {line.strip()}", "warning")

        if result.returncode != 0:
            raise UploadError(f"{cmd[0]} failed ({result.returncode}): {result.stderr.strip()}")
