"""Backup execution and management of archive directories."""

import logging
import os
import shutil
from typing import List, Optional, Sequence

from .archiver import Archiver
from .errors import ArchiveError, ArtifactNotFoundError, CommandError, RemoteUnavailableError
from .models import AppDefinition, ArchiveEntry, BackupReport, ItemResult
from .naming import (
    LATEST,
    SECRETS_NAME,
    archive_dir,
    archive_path,
    artifact_name,
    is_valid_date_arg,
    latest_dir,
    latest_path,
    remote_archive_dir,
    secrets_path,
    today,
)
from .phases import Phase, PhaseTracker, backup_tracker
from .rclone import RcloneRemote
from .registry import APP_REGISTRY, get_app, get_compose_path, get_config_paths
from .retention import apply_local_retention, apply_remote_retention, list_local_archive_dates


def detect_installed_apps(base_dir: str) -> List[AppDefinition]:
    """Registry apps whose compose file and at least one config directory exist."""
    installed = []
    for app in APP_REGISTRY:
        if not os.path.exists(get_compose_path(app, base_dir)):
            continue
        if any(os.path.exists(path) for path in get_config_paths(app, base_dir)):
            installed.append(app)
    return installed


class BackupExecutor:
    """Creates one archive directory per run and applies retention."""

    def __init__(self, backup_dir: str, base_dir: str, project_root: str,
                 local_retention: int = 5, remote_retention: int = 10,
                 remote: Optional[RcloneRemote] = None,
                 remote_path: str = "/backups/archive",
                 selected_apps: Optional[List[str]] = None,
                 archiver: Optional[Archiver] = None,
                 tracker: Optional[PhaseTracker] = None):
        """Initialize backup executor.

        Args:
            backup_dir: Local backup root.
            base_dir: Directory holding the app directories.
            project_root: Directory holding the secrets files.
            local_retention: Archive directories to keep locally.
            remote_retention: Archive directories to keep on the remote.
            remote: Remote mirror, or None to skip uploading.
            remote_path: Remote directory holding the archive directories.
            selected_apps: Configured app selection; None means auto-detect.
            archiver: Artifact builder.
            tracker: Phase tracker to advance while running.
        """
        self.backup_dir = backup_dir
        self.base_dir = base_dir
        self.project_root = project_root
        self.local_retention = local_retention
        self.remote_retention = remote_retention
        self.remote = remote
        self.remote_path = remote_path
        self.selected_apps = selected_apps
        self.archiver = archiver or Archiver()
        self.tracker = tracker or backup_tracker()
        self.logger = logging.getLogger(__name__)

    def run(self, apps: Optional[Sequence[str]] = None, date: Optional[str] = None) -> BackupReport:
        """Back up the selected apps into today's archive directory.

        Args:
            apps: Explicit app names. Falls back to the configured selection,
                then to auto-detection.
            date: Archive directory name; defaults to today's local date.

        Returns:
            BackupReport with one item per app. ``ok`` is False if any app failed.
        """
        date = date or today()
        report = BackupReport(date=date)

        try:
            self.tracker.advance(Phase.DETECTING)
            os.makedirs(archive_dir(self.backup_dir, date), exist_ok=True)
            os.makedirs(latest_dir(self.backup_dir), exist_ok=True)
            selection = self._resolve_selection(apps, report)

            self.tracker.advance(Phase.BACKING_UP, f"{len(selection)} apps")
            self.logger.info(f"Starting backup of {len(selection)} apps into {archive_dir(self.backup_dir, date)}")
            for app in selection:
                self._backup_app(app, date, report)

            self.tracker.advance(Phase.SECRETS)
            self._backup_secrets(date, report)

            self.tracker.advance(Phase.ROTATING)
            self._rotate_local(report)

            if self._remote_usable(report):
                self.tracker.advance(Phase.UPLOADING, self.remote.name)
                self._upload(date, report)

            self.tracker.advance(Phase.DONE)
        except Exception as e:
            if not self.tracker.finished:
                self.tracker.fail(str(e))
            raise

        succeeded = len(report.names(ItemResult.SUCCESS))
        self.logger.info(f"Backup finished: {succeeded} succeeded, {len(report.failures)} failed")
        return report

    def _resolve_selection(self, apps: Optional[Sequence[str]], report: BackupReport) -> List[AppDefinition]:
        names = list(apps) if apps else self.selected_apps
        if not names:
            detected = detect_installed_apps(self.base_dir)
            self.logger.info(f"Detected installed apps: {', '.join(a.name for a in detected) or '(none)'}")
            return detected

        selection = []
        for name in names:
            app = get_app(name)
            if app is None:
                self.logger.error(f"Unknown app: {name}")
                report.add(name, ItemResult.FAILED, f"unknown app '{name}'")
                continue
            selection.append(app)
        return selection

    def _backup_app(self, app: AppDefinition, date: str, report: BackupReport) -> None:
        output_path = archive_path(self.backup_dir, date, app.name)
        try:
            self.archiver.create_app_archive(app, self.base_dir, output_path)
            self._update_latest(app.name, output_path)
        except (ArchiveError, OSError) as e:
            self.logger.error(f"Backup of {app.name} failed: {e}")
            report.add(app.name, ItemResult.FAILED, str(e))
            return

        size = os.path.getsize(output_path)
        self.logger.info(f"Backed up {app.name} ({size} bytes)")
        report.add(app.name, ItemResult.SUCCESS)

    def _update_latest(self, name: str, target: str) -> None:
        # Readers see either the old pointer or the new one, never a missing link.
        pointer = latest_path(self.backup_dir, name)
        temp_pointer = os.path.join(os.path.dirname(pointer), f".{os.path.basename(pointer)}.tmp")
        if os.path.lexists(temp_pointer):
            os.remove(temp_pointer)
        os.symlink(os.path.abspath(target), temp_pointer)
        os.replace(temp_pointer, pointer)

    def _backup_secrets(self, date: str, report: BackupReport) -> None:
        output_path = secrets_path(self.backup_dir, date)
        try:
            files = self.archiver.create_secrets_archive(self.project_root, output_path)
            if files:
                self._update_latest(SECRETS_NAME, output_path)
        except (ArchiveError, OSError) as e:
            self.logger.warning(f"Secrets backup failed: {e}")
            report.warn(f"secrets backup failed: {e}")
            return
        if files:
            self.logger.info(f"Backed up secrets ({', '.join(files)})")

    def _rotate_local(self, report: BackupReport) -> None:
        try:
            report.rotated_local = apply_local_retention(self.backup_dir, self.local_retention)
        except OSError as e:
            self.logger.warning(f"Local rotation failed: {e}")
            report.warn(f"local rotation failed: {e}")

    def _remote_usable(self, report: BackupReport) -> bool:
        if self.remote is None:
            return False
        configured, reason = self.remote.check_configured()
        if not configured:
            self.logger.warning(f"Skipping remote upload: {reason}")
            report.warn(f"remote upload skipped: {reason}")
        return configured

    def _upload(self, date: str, report: BackupReport) -> None:
        try:
            self.remote.upload(archive_dir(self.backup_dir, date), remote_archive_dir(self.remote_path, date))
            report.uploaded = True
        except CommandError as e:
            self.logger.warning(f"Remote upload failed: {e.detail}")
            report.warn(f"remote upload failed: {e.detail}")
            return

        try:
            report.rotated_remote = apply_remote_retention(self.remote, self.remote_path, self.remote_retention)
        except CommandError as e:
            self.logger.warning(f"Remote rotation failed: {e.detail}")
            report.warn(f"remote rotation failed: {e.detail}")

    def list_local(self) -> List[ArchiveEntry]:
        """Local archive directories, oldest first."""
        entries = []
        for date in list_local_archive_dates(self.backup_dir):
            directory = archive_dir(self.backup_dir, date)
            artifacts = []
            total_size = 0
            for filename in sorted(os.listdir(directory)):
                name = artifact_name(filename)
                file_path = os.path.join(directory, filename)
                if name and os.path.isfile(file_path):
                    artifacts.append(name)
                    total_size += os.path.getsize(file_path)
            entries.append(ArchiveEntry(date=date, path=directory, artifacts=artifacts, total_size=total_size))
        return entries

    def list_remote(self) -> List[str]:
        """Remote archive directory names, oldest first.

        Raises:
            RemoteUnavailableError: If rclone or the remote is not set up.
            CommandError: If the listing fails.
        """
        self._require_remote()
        return self.remote.list_dirs(self.remote_path)

    def delete_local(self, date: Optional[str] = None) -> List[str]:
        """Delete one local archive directory, or all of them.

        Deleting all archive directories also clears the latest pointers.
        Directories whose names are not archive dates are never touched.

        Returns:
            Archive dates that were deleted.

        Raises:
            ValueError: If ``date`` is not a valid archive date.
            ArtifactNotFoundError: If no archive directory exists for ``date``.
        """
        if date is not None:
            _check_date(date)
            directory = archive_dir(self.backup_dir, date)
            if not os.path.isdir(directory):
                raise ArtifactNotFoundError(f"No local backup for {date}")
            shutil.rmtree(directory)
            self.logger.info(f"Deleted local backup: {date}")
            return [date]

        deleted = []
        for archive_date in list_local_archive_dates(self.backup_dir):
            shutil.rmtree(archive_dir(self.backup_dir, archive_date))
            self.logger.info(f"Deleted local backup: {archive_date}")
            deleted.append(archive_date)

        pointers = latest_dir(self.backup_dir)
        if os.path.isdir(pointers):
            for filename in os.listdir(pointers):
                path = os.path.join(pointers, filename)
                if os.path.islink(path) or os.path.isfile(path):
                    os.remove(path)
        return deleted

    def delete_remote(self, date: Optional[str] = None) -> List[str]:
        """Purge one remote archive directory, or all of them.

        Returns:
            Archive dates that were purged.

        Raises:
            ValueError: If ``date`` is not a valid archive date.
            RemoteUnavailableError: If rclone or the remote is not set up.
            CommandError: If purging a single requested date fails.
        """
        self._require_remote()

        if date is not None:
            _check_date(date)
            self.remote.purge(remote_archive_dir(self.remote_path, date))
            self.logger.info(f"Deleted remote backup: {date}")
            return [date]

        deleted = []
        for remote_date in self.remote.list_dirs(self.remote_path):
            try:
                self.remote.purge(remote_archive_dir(self.remote_path, remote_date))
            except CommandError as e:
                self.logger.warning(f"Failed to delete remote backup {remote_date}: {e.detail}")
                continue
            self.logger.info(f"Deleted remote backup: {remote_date}")
            deleted.append(remote_date)
        return deleted

    def _require_remote(self) -> None:
        if self.remote is None:
            raise RemoteUnavailableError("No remote configured")
        self.remote.ensure_available()


def _check_date(date: str) -> None:
    if date == LATEST or not is_valid_date_arg(date):
        raise ValueError(f"Invalid backup date '{date}', expected YYYY-MM-DD")
