"""Disaster recovery: rebuild a bare host from the newest remote backup."""

import logging
import os
import shutil
import tempfile
from typing import Callable, Dict, Optional

from .archiver import Archiver
from .compose import write_compose_and_start
from .docker import DockerClient
from .errors import ArchiveError, CommandError, PreconditionError
from .host import OS_RELEASE_PATH, create_data_skeleton, detect_distro, is_root
from .models import Discovery, ItemResult, RecoveryReport
from .naming import SECRETS_NAME, artifact_name, remote_archive_dir, remote_archive_path
from .phases import Phase, PhaseTracker, recovery_tracker
from .rclone import RcloneRemote
from .registry import get_app
from .resolver import STAGING_PREFIX
from .systemd import BackupTimer
from ..config.config_manager import ConfigManager

Confirm = Callable[[str], bool]
RetryRemote = Callable[[str], bool]


class DisasterRecovery:
    """Ordered bootstrap of a fresh Debian/Ubuntu host.

    Every fatal check raises PreconditionError before any later step runs.
    Once apps are being restored, failures are recorded per app and the
    remaining apps are still processed.
    """

    def __init__(self, config_manager: ConfigManager, remote: RcloneRemote,
                 remote_path: str = "/backups/archive",
                 base_dir: Optional[str] = None,
                 docker: Optional[DockerClient] = None,
                 archiver: Optional[Archiver] = None,
                 timer: Optional[BackupTimer] = None,
                 tracker: Optional[PhaseTracker] = None,
                 confirm: Optional[Confirm] = None,
                 retry_remote: Optional[RetryRemote] = None,
                 os_release_path: str = OS_RELEASE_PATH):
        """Initialize recovery.

        Args:
            config_manager: Loaded configuration; reloaded after secrets are restored.
            remote: Remote holding the archive directories.
            remote_path: Remote directory holding the archive directories.
            base_dir: Directory to rebuild the apps in; defaults to the configured one.
            docker: Container runtime client.
            archiver: Artifact extractor.
            timer: Backup timer to install at the end.
            tracker: Phase tracker to advance while running.
            confirm: Asked before installing Docker and before restoring.
                None means proceed without asking.
            retry_remote: Asked with the failure reason while the remote is not
                configured; returning False aborts. None aborts immediately.
            os_release_path: os-release file used for distro detection.
        """
        self.config_manager = config_manager
        self.remote = remote
        self.remote_path = remote_path
        self.base_dir = base_dir
        self.docker = docker or DockerClient()
        self.archiver = archiver or Archiver()
        self.timer = timer or BackupTimer()
        self.tracker = tracker or recovery_tracker()
        self.confirm = confirm
        self.retry_remote = retry_remote
        self.os_release_path = os_release_path
        self.logger = logging.getLogger(__name__)

    def _confirmed(self, message: str) -> bool:
        return self.confirm is None or self.confirm(message)

    def run(self) -> RecoveryReport:
        """Run every recovery step in order.

        Returns:
            RecoveryReport; ``ok`` is False if any app failed to restore.

        Raises:
            PreconditionError: If a fatal check fails.
        """
        report = RecoveryReport()
        self.logger.info("=== Starting disaster recovery ===")

        try:
            self.tracker.advance(Phase.PREFLIGHT)
            self._preflight()

            self.tracker.advance(Phase.DOCKER)
            self._ensure_docker()

            self.tracker.advance(Phase.RCLONE)
            self._ensure_rclone()

            self.tracker.advance(Phase.REMOTE, self.remote.name)
            self._ensure_remote()

            self.tracker.advance(Phase.BASE_DIR)
            self._prepare_base_dir()

            self.tracker.advance(Phase.DISCOVER)
            discovery = self.discover()
            report.date = discovery.date

            self.tracker.advance(Phase.CONFIRMING)
            if not self._confirmed(f"Restore {len(discovery.names)} backups from {discovery.date} "
                                   f"({', '.join(discovery.names)})?"):
                self.logger.info("Recovery cancelled")
                report.cancelled = True
                self.tracker.advance(Phase.CANCELLED)
                return report

            self.tracker.advance(Phase.SECRETS)
            if SECRETS_NAME in discovery.names:
                self._restore_secrets(discovery.date, report)
            self._reload_config(report)
            env = self.config_manager.get_env_config()
            if self.base_dir:
                env['BASE_DIR'] = os.path.abspath(self.base_dir)

            self.tracker.advance(Phase.RESTORING)
            for name in discovery.names:
                if name != SECRETS_NAME:
                    self._restore_app(name, discovery.date, env, report)

            self.tracker.advance(Phase.SCHEDULER)
            self._install_timer(report)

            self.tracker.advance(Phase.DONE)
        except Exception as e:
            if not self.tracker.finished:
                self.tracker.fail(str(e))
            raise

        self.logger.info("=== Recovery complete ===")
        if report.failures:
            self.logger.warning(f"Some apps failed: {', '.join(item.name for item in report.failures)}")
        else:
            restored = len(report.names(ItemResult.SUCCESS))
            self.logger.info(f"All {restored} item(s) restored successfully from {discovery.date}")
        return report

    def _preflight(self) -> None:
        if not is_root():
            raise PreconditionError("Recover must be run as root (sudo)")
        distro = detect_distro(self.os_release_path)
        self.logger.info(f"Detected distro: {distro.pretty_name}")

    def _ensure_docker(self) -> None:
        if self.docker.is_installed():
            self.logger.info("Docker already installed")
        else:
            if not self._confirmed("Docker is not installed. Install it now?"):
                raise PreconditionError("Docker is required for recovery")
            self.logger.info("Installing Docker...")
            try:
                self.docker.install()
            except CommandError as e:
                raise PreconditionError(f"Docker installation failed: {e.detail}")
            self.logger.info("Docker installed")

        self.logger.info("Waiting for Docker daemon...")
        if not self.docker.wait_until_ready():
            raise PreconditionError("Docker daemon did not become ready in time")
        self.logger.info("Docker daemon ready")

    def _ensure_rclone(self) -> None:
        if self.remote.is_installed():
            self.logger.info("rclone already installed")
            return
        try:
            self.remote.install()
        except CommandError as e:
            raise PreconditionError(f"rclone installation failed: {e.detail}")
        if not self.remote.is_installed():
            raise PreconditionError("rclone installation finished but rclone is not on PATH")
        self.logger.info("rclone installed")

    def _ensure_remote(self) -> None:
        while True:
            configured, reason = self.remote.check_configured()
            if configured:
                self.logger.info(f"rclone remote '{self.remote.name}' configured")
                return
            self.logger.warning(f"rclone remote '{self.remote.name}' not configured: {reason}")
            if self.retry_remote is None or not self.retry_remote(reason):
                raise PreconditionError(
                    f"rclone remote '{self.remote.name}' not configured. Run 'rclone config' first. ({reason})"
                )

    def _prepare_base_dir(self) -> None:
        env = self.config_manager.get_env_config()
        base_dir = os.path.abspath(self.base_dir or env['BASE_DIR'])
        self.logger.info(f"Using BASE_DIR: {base_dir}")

        create_data_skeleton(base_dir)
        env['BASE_DIR'] = base_dir
        env_path = self.config_manager.save_env_config(env)
        self.logger.info(f"Wrote {env_path}")

    def discover(self) -> Discovery:
        """Artifacts in the newest remote archive directory, secrets first.

        Raises:
            PreconditionError: If the remote holds no backups.
        """
        self.logger.info("Discovering remote backups...")
        try:
            dates = self.remote.list_dirs(self.remote_path)
        except CommandError as e:
            raise PreconditionError(f"Could not list remote backups: {e.detail}")
        if not dates:
            raise PreconditionError("No remote backups found")

        date = dates[-1]
        files = self.remote.list_files(remote_archive_dir(self.remote_path, date))
        names = [name for name in (artifact_name(f) for f in files) if name]
        if not names:
            raise PreconditionError(f"No remote backups found in {date}")
        if SECRETS_NAME in names:
            names = [SECRETS_NAME] + [name for name in names if name != SECRETS_NAME]

        self.logger.info(f"Found backup from {date}: {', '.join(names)}")
        return Discovery(date=date, names=names, sources={name: "remote" for name in names})

    def _download_and_extract(self, name: str, date: str, dest_dir: str) -> None:
        staging_dir = tempfile.mkdtemp(prefix=STAGING_PREFIX)
        try:
            local_path = self.remote.download(remote_archive_path(self.remote_path, date, name), staging_dir)
            os.makedirs(dest_dir, exist_ok=True)
            self.archiver.extract(local_path, dest_dir)
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)

    def _restore_secrets(self, date: str, report: RecoveryReport) -> None:
        self.logger.info("Restoring secrets...")
        try:
            self._download_and_extract(SECRETS_NAME, date, self.config_manager.get_project_root())
        except (ArchiveError, CommandError, OSError) as e:
            self.logger.warning(f"Failed to restore secrets: {e}")
            report.warn(f"secrets restore failed: {e}")
            return
        self.logger.info("Secrets restored, reloading config")
        report.add(SECRETS_NAME, ItemResult.SUCCESS)

    def _reload_config(self, report: RecoveryReport) -> None:
        try:
            self.config_manager.reload()
        except (ValueError, OSError) as e:
            self.logger.warning(f"Restored configuration could not be loaded: {e}")
            report.warn(f"restored configuration not loaded: {e}")

    def _restore_app(self, name: str, date: str, env: Dict[str, str], report: RecoveryReport) -> None:
        app = get_app(name)
        if app is None:
            self.logger.warning(f"Unknown app '{name}', skipping")
            report.add(name, ItemResult.SKIPPED, "unknown app")
            report.warn(f"unknown app '{name}' skipped")
            return

        self.logger.info(f"Restoring {app.display_name}...")
        try:
            self._download_and_extract(name, date, env['BASE_DIR'])
            self.logger.info(f"Starting {app.display_name}...")
            write_compose_and_start(app, env, self.docker)
        except (ArchiveError, CommandError, OSError) as e:
            message = e.detail if isinstance(e, CommandError) else str(e)
            self.logger.warning(f"Failed to restore {app.display_name}: {message}")
            report.add(name, ItemResult.FAILED, message)
            return

        self.logger.info(f"{app.display_name} restored and started")
        report.add(name, ItemResult.SUCCESS)

    def _install_timer(self, report: RecoveryReport) -> None:
        if not self.timer.is_supported():
            self.logger.info("Skipping backup timer (systemd not available or WSL)")
            return
        try:
            self.timer.install()
        except (CommandError, OSError) as e:
            self.logger.warning(f"Failed to install backup timer: {e}")
            report.warn(f"backup timer not installed: {e}")
            return
        report.timer_installed = True
