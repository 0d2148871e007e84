"""Exception types for backup, restore and recovery operations."""

from typing import List, Optional


class HomelabBackupError(Exception):
    """Base class for all homelab-backup errors."""


class CommandError(HomelabBackupError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: List[str], returncode: int, stderr: str = "", stdout: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr or ""
        self.stdout = stdout or ""
        detail = self.stderr.strip() or self.stdout.strip() or f"exit status {returncode}"
        super().__init__(f"{' '.join(self.command)}: {detail}")

    @property
    def detail(self) -> str:
        """Tool output suitable for a summary line."""
        return self.stderr.strip() or self.stdout.strip() or f"exit status {self.returncode}"


class ArchiveError(HomelabBackupError):
    """Creating or extracting an artifact failed."""


class ArtifactNotFoundError(HomelabBackupError):
    """No artifact exists for the requested app and date."""


class RestoreError(HomelabBackupError):
    """Restoring a single app failed.

    ``config_removed`` is set when the failure happened after the app's
    existing config directories were deleted.
    """

    def __init__(self, app: str, message: str, config_removed: bool = False):
        self.app = app
        self.config_removed = config_removed
        super().__init__(message)


class RemoteUnavailableError(HomelabBackupError):
    """rclone is not installed or the named remote is not configured."""


class PreconditionError(HomelabBackupError):
    """A fatal precondition for an operation is not met."""


class InvalidTransition(HomelabBackupError):
    """A phase tracker was asked to make a transition it does not allow."""

    def __init__(self, current: str, requested: str, flow: Optional[str] = None):
        self.current = current
        self.requested = requested
        label = f"{flow}: " if flow else ""
        super().__init__(f"{label}cannot move from '{current}' to '{requested}'")
