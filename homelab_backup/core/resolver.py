"""Locating artifacts for restore: local latest, local dated, newest local, remote."""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import CommandError
from .models import Discovery
from .naming import (
    LATEST,
    SECRETS_NAME,
    archive_dir,
    archive_path,
    artifact_name,
    latest_dir,
    latest_path,
    remote_archive_dir,
    remote_archive_path,
)
from .rclone import RcloneRemote
from .retention import list_local_archive_dates

STAGING_PREFIX = "homelab-restore-"


@dataclass
class ResolvedArtifact:
    """A local artifact path, plus the staging directory that holds it if it was downloaded."""
    name: str
    path: str
    staging_dir: Optional[str] = None
    source: str = "local"

    def cleanup(self) -> None:
        """Remove the staging directory, if any. Safe to call repeatedly."""
        if self.staging_dir:
            shutil.rmtree(self.staging_dir, ignore_errors=True)
            self.staging_dir = None


class ArtifactResolver:
    """Finds the artifact for an app and date, preferring local copies."""

    def __init__(self, backup_dir: str, remote: Optional[RcloneRemote] = None,
                 remote_path: str = "/backups/archive"):
        """Initialize resolver.

        Args:
            backup_dir: Local backup root (holds ``archive/`` and ``latest/``).
            remote: Remote to fall back to, or None for local only.
            remote_path: Remote directory holding the dated archive directories.
        """
        self.backup_dir = backup_dir
        self.remote = remote
        self.remote_path = remote_path
        self.logger = logging.getLogger(__name__)
        self._remote_checked: Optional[bool] = None

    def remote_available(self) -> bool:
        """True if rclone is installed and the remote is configured (checked once)."""
        if self.remote is None:
            return False
        if self._remote_checked is None:
            configured, reason = self.remote.check_configured()
            if not configured:
                self.logger.debug(f"Remote fallback unavailable: {reason}")
            self._remote_checked = configured
        return self._remote_checked

    def newest_local_date(self) -> Optional[str]:
        dates = list_local_archive_dates(self.backup_dir)
        return dates[-1] if dates else None

    def newest_remote_date(self) -> Optional[str]:
        dates = self.remote.list_dirs(self.remote_path)
        return dates[-1] if dates else None

    def resolve(self, name: str, date: str = LATEST) -> Optional[ResolvedArtifact]:
        """Find the artifact for ``name``.

        Args:
            name: App name or ``secrets``.
            date: ``latest`` or an archive date.

        Returns:
            ResolvedArtifact, or None when no copy exists anywhere. The caller
            must call ``cleanup()`` once the artifact has been consumed.
        """
        if date == LATEST:
            pointer = latest_path(self.backup_dir, name)
            if os.path.isfile(pointer):
                return ResolvedArtifact(name, pointer, source="latest")
        else:
            dated = archive_path(self.backup_dir, date, name)
            if os.path.isfile(dated):
                return ResolvedArtifact(name, dated, source="local")

        if date == LATEST:
            newest = self.newest_local_date()
            if newest:
                candidate = archive_path(self.backup_dir, newest, name)
                if os.path.isfile(candidate):
                    return ResolvedArtifact(name, candidate, source="local")

        if self.remote_available():
            return self._resolve_remote(name, date)

        return None

    def _resolve_remote(self, name: str, date: str) -> Optional[ResolvedArtifact]:
        try:
            effective_date = self.newest_remote_date() if date == LATEST else date
        except CommandError as e:
            self.logger.warning(f"Could not list remote backups: {e.detail}")
            return None
        if not effective_date:
            return None

        remote_file = remote_archive_path(self.remote_path, effective_date, name)
        if not self.remote.file_exists(remote_file):
            return None

        staging_dir = tempfile.mkdtemp(prefix=STAGING_PREFIX)
        try:
            local_path = self.remote.download(remote_file, staging_dir)
        except CommandError as e:
            shutil.rmtree(staging_dir, ignore_errors=True)
            self.logger.warning(f"Failed to download {remote_file}: {e.detail}")
            return None

        if not os.path.isfile(local_path):
            shutil.rmtree(staging_dir, ignore_errors=True)
            self.logger.warning(f"Download of {remote_file} produced no file")
            return None

        self.logger.info(f"Downloaded {name} from {self.remote.name} ({effective_date})")
        return ResolvedArtifact(name, local_path, staging_dir=staging_dir, source="remote")

    def discover(self, date: str = LATEST) -> Discovery:
        """Enumerate every artifact available for a full restore.

        Local latest pointers and local archive directories are checked
        first; remote artifacts are added only for names not found locally.
        ``secrets`` is always listed first.
        """
        sources: Dict[str, str] = {}

        if date == LATEST:
            for name in self._names_in(latest_dir(self.backup_dir)):
                sources.setdefault(name, "latest")
            local_date = self.newest_local_date()
        else:
            local_date = date

        if local_date:
            for name in self._names_in(archive_dir(self.backup_dir, local_date)):
                sources.setdefault(name, "local")

        if self.remote_available():
            try:
                remote_date = self.newest_remote_date() if date == LATEST else date
                if remote_date:
                    for filename in self.remote.list_files(remote_archive_dir(self.remote_path, remote_date)):
                        name = artifact_name(filename)
                        if name:
                            sources.setdefault(name, "remote")
            except CommandError as e:
                self.logger.warning(f"Could not list remote backups: {e.detail}")

        return Discovery(date=date, names=_secrets_first(list(sources)), sources=sources)

    @staticmethod
    def _names_in(directory: str) -> List[str]:
        if not os.path.isdir(directory):
            return []
        names = []
        for filename in sorted(os.listdir(directory)):
            name = artifact_name(filename)
            if name and os.path.isfile(os.path.join(directory, filename)):
                names.append(name)
        return names


def _secrets_first(names: List[str]) -> List[str]:
    if SECRETS_NAME in names:
        return [SECRETS_NAME] + [name for name in names if name != SECRETS_NAME]
    return names
