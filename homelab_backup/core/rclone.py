"""Remote storage access through rclone."""

import logging
import os
import pwd
from typing import List, Optional, Tuple

from .errors import CommandError, RemoteUnavailableError
from .naming import is_archive_date
from ..utils.shell import command_exists, run_command

INSTALL_SCRIPT_URL = "https://rclone.org/install.sh"


class RcloneRemote:
    """Operations against one named rclone remote."""

    def __init__(self, name: str, config_file: Optional[str] = None):
        """Initialize remote wrapper.

        Args:
            name: rclone remote name, without the trailing colon.
            config_file: Explicit rclone.conf path. When omitted and running
                under sudo, the invoking user's config is used.
        """
        self.name = name
        self.config_file = config_file
        self.logger = logging.getLogger(__name__)

    def is_installed(self) -> bool:
        return command_exists("rclone")

    def install(self) -> None:
        """Install rclone via the official install script."""
        self.logger.info("Installing rclone...")
        run_command(["bash", "-c", f"curl -fsSL {INSTALL_SCRIPT_URL} | bash"])

    def _config_args(self) -> List[str]:
        if self.config_file:
            return ["--config", self.config_file]

        sudo_user = os.environ.get("SUDO_USER")
        if not sudo_user:
            return []

        try:
            home_dir = pwd.getpwnam(sudo_user).pw_dir
        except KeyError:
            return []

        config_path = os.path.join(home_dir, ".config", "rclone", "rclone.conf")
        if not os.path.exists(config_path):
            return []
        return ["--config", config_path]

    def _target(self, path: str) -> str:
        return f"{self.name}:{path}"

    def _run(self, *args: str, check: bool = True):
        return run_command(["rclone", *self._config_args(), *args], check=check)

    def check_configured(self) -> Tuple[bool, str]:
        """Check that the remote appears in ``rclone listremotes``.

        Returns:
            Tuple of (configured, reason). The reason is empty when configured.
        """
        if not self.is_installed():
            return False, "rclone is not installed"

        result = self._run("listremotes", check=False)
        if not result.ok:
            return False, (f"rclone listremotes failed (exit {result.returncode}): "
                           f"{result.stderr.strip() or '(empty)'}")

        remotes = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if f"{self.name}:" not in remotes:
            return False, f"remote '{self.name}:' not found in [{', '.join(remotes) or '(empty)'}]"
        return True, ""

    def ensure_available(self) -> None:
        """Raise RemoteUnavailableError unless the tool and remote are usable."""
        configured, reason = self.check_configured()
        if not configured:
            raise RemoteUnavailableError(reason)

    def list_dirs(self, path: str) -> List[str]:
        """Archive directory names under ``path``, sorted ascending.

        Raises:
            CommandError: If the listing fails.
        """
        result = self._run("lsd", self._target(path), check=False)
        if not result.ok:
            # A base path that was never uploaded to is reported as missing.
            if "directory not found" in result.stderr.lower():
                return []
            raise CommandError(result.args, result.returncode, result.stderr, result.stdout)

        names = []
        for line in result.stdout.splitlines():
            parts = line.split()
            if parts and is_archive_date(parts[-1]):
                names.append(parts[-1])
        return sorted(names)

    def list_files(self, path: str) -> List[str]:
        """File names directly under ``path``, sorted ascending."""
        result = self._run("ls", "--max-depth", "1", self._target(path), check=False)
        if not result.ok or not result.stdout.strip():
            return []

        files = []
        for line in result.stdout.splitlines():
            parts = line.strip().split(None, 1)
            if len(parts) == 2:
                files.append(parts[1])
        return sorted(files)

    def file_exists(self, path: str) -> bool:
        result = self._run("ls", self._target(path), check=False)
        return result.ok and bool(result.stdout.strip())

    def upload(self, local_path: str, remote_path: str) -> None:
        self.logger.info(f"Uploading {local_path} to {self._target(remote_path)}")
        self._run("copy", local_path, self._target(remote_path), "--log-level", "INFO")

    def download(self, remote_path: str, local_dir: str) -> str:
        """Copy a remote file into ``local_dir`` and return the local path."""
        self.logger.info(f"Downloading {self._target(remote_path)}")
        self._run("copy", self._target(remote_path), local_dir)
        return os.path.join(local_dir, remote_path.rstrip("/").split("/")[-1])

    def purge(self, remote_path: str) -> None:
        self._run("purge", self._target(remote_path))
