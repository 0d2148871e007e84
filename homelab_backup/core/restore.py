"""Restoring apps and the secrets bundle from backup artifacts."""

import logging
import os
import shutil
from typing import Callable, Optional

from .archiver import Archiver
from .docker import DockerClient
from .errors import ArchiveError, ArtifactNotFoundError, CommandError, RestoreError
from .models import AppDefinition, ItemResult, RestoreReport
from .naming import LATEST, SECRETS_NAME
from .phases import Phase, PhaseTracker, restore_tracker
from .registry import get_app, get_compose_path, get_config_paths
from .resolver import ArtifactResolver, ResolvedArtifact

Confirm = Callable[[str], bool]


class RestoreExecutor:
    """Restores single apps or a whole archive directory."""

    def __init__(self, base_dir: str, project_root: str, resolver: ArtifactResolver,
                 docker: Optional[DockerClient] = None,
                 archiver: Optional[Archiver] = None,
                 tracker: Optional[PhaseTracker] = None):
        self.base_dir = base_dir
        self.project_root = project_root
        self.resolver = resolver
        self.docker = docker or DockerClient()
        self.archiver = archiver or Archiver()
        self.tracker = tracker or restore_tracker()
        self.logger = logging.getLogger(__name__)

    def restore_app(self, app: AppDefinition, artifact: ResolvedArtifact) -> None:
        """Replace an app's configuration with the contents of ``artifact``.

        The container is stopped, its config directories are deleted and the
        artifact is extracted into the base directory. The staging directory
        of a downloaded artifact is removed whatever the outcome. The app is
        started again if its compose file exists after extraction.

        Raises:
            RestoreError: If any step fails. ``config_removed`` is True when
                the previous configuration was already deleted.
        """
        config_removed = False
        try:
            self.logger.info(f"Stopping {app.display_name} container...")
            try:
                self.docker.stop(app.container)
            except CommandError as e:
                raise RestoreError(app.name, f"Failed to stop {app.container}: {e.detail}")

            self.logger.info(f"Removing config directories for {app.display_name}...")
            for path in get_config_paths(app, self.base_dir):
                if os.path.lexists(path):
                    config_removed = True
                    shutil.rmtree(path)

            self.logger.info(f"Extracting backup for {app.display_name}...")
            try:
                os.makedirs(self.base_dir, exist_ok=True)
                self.archiver.extract(artifact.path, self.base_dir)
            except (ArchiveError, OSError) as e:
                if config_removed:
                    self.logger.error(
                        f"{app.display_name}: extraction failed after the previous configuration "
                        f"was deleted; it no longer exists on disk"
                    )
                raise RestoreError(app.name, str(e), config_removed=config_removed)
        except OSError as e:
            raise RestoreError(app.name, f"Failed to remove config for {app.name}: {e}",
                               config_removed=config_removed)
        finally:
            artifact.cleanup()

        compose_path = get_compose_path(app, self.base_dir)
        if os.path.exists(compose_path):
            self.logger.info(f"Starting {app.display_name} container...")
            try:
                self.docker.compose_up(compose_path)
            except CommandError as e:
                raise RestoreError(app.name, f"Restored files but failed to start {app.container}: {e.detail}")

        self.logger.info(f"{app.display_name} restored successfully")

    def restore_secrets(self, date: str = LATEST) -> bool:
        """Extract the secrets artifact into the project root.

        Returns:
            False if no secrets artifact exists for ``date``.

        Raises:
            ArchiveError: If extraction fails.
        """
        artifact = self.resolver.resolve(SECRETS_NAME, date)
        if artifact is None:
            self.logger.info("No secrets backup found")
            return False

        try:
            os.makedirs(self.project_root, exist_ok=True)
            self.archiver.extract(artifact.path, self.project_root)
        finally:
            artifact.cleanup()

        self.logger.info(f"Secrets restored to {self.project_root}")
        return True

    def restore_single(self, name: str, date: str = LATEST, confirm: Optional[Confirm] = None) -> RestoreReport:
        """Restore one app (or the secrets bundle).

        Raises:
            ValueError: If ``name`` is not a known app.
            ArtifactNotFoundError: If no artifact exists locally or remotely.
            RestoreError: If the restore itself fails.
        """
        report = RestoreReport(date=date)
        app = None
        if name != SECRETS_NAME:
            app = get_app(name)
            if app is None:
                raise ValueError(f"Unknown app: {name}")

        try:
            self.tracker.advance(Phase.RESOLVING, name)
            artifact = self.resolver.resolve(name, date)
            if artifact is None:
                raise ArtifactNotFoundError(f"No backup found for {name} ({date})")
            self.logger.info(f"Found backup for {name}: {artifact.path} ({artifact.source})")

            self.tracker.advance(Phase.CONFIRMING)
            if confirm is not None and not confirm(f"Restore {name} from {date}? Its current configuration will be replaced."):
                artifact.cleanup()
                self.logger.info("Restore cancelled")
                report.cancelled = True
                self.tracker.advance(Phase.CANCELLED)
                return report

            self.tracker.advance(Phase.RESTORING, name)
            if app is None:
                try:
                    os.makedirs(self.project_root, exist_ok=True)
                    self.archiver.extract(artifact.path, self.project_root)
                finally:
                    artifact.cleanup()
            else:
                self.restore_app(app, artifact)
            report.add(name, ItemResult.SUCCESS)
            self.tracker.advance(Phase.DONE)
        except Exception as e:
            if not self.tracker.finished:
                self.tracker.fail(str(e))
            raise

        return report

    def restore_full(self, date: str = LATEST, confirm: Optional[Confirm] = None) -> RestoreReport:
        """Restore the secrets bundle and every app found for ``date``.

        Each app is restored independently; a failure is recorded and the
        remaining apps are still processed.

        Raises:
            ArtifactNotFoundError: If no artifacts exist at all.
        """
        report = RestoreReport(date=date)

        try:
            self.tracker.advance(Phase.RESOLVING, date)
            discovery = self.resolver.discover(date)
            if not discovery.names:
                raise ArtifactNotFoundError(f"No backups found ({date})")
            self.logger.info(f"Found backups: {', '.join(discovery.names)}")

            self.tracker.advance(Phase.CONFIRMING)
            if confirm is not None and not confirm(
                    f"Restore {len(discovery.names)} backups ({', '.join(discovery.names)})? "
                    f"Current configuration will be replaced."):
                self.logger.info("Restore cancelled")
                report.cancelled = True
                self.tracker.advance(Phase.CANCELLED)
                return report

            self.tracker.advance(Phase.RESTORING)
            for name in discovery.names:
                if name == SECRETS_NAME:
                    self._restore_secrets_item(date, report)
                else:
                    self._restore_app_item(name, date, report)

            self.tracker.advance(Phase.DONE)
        except Exception as e:
            if not self.tracker.finished:
                self.tracker.fail(str(e))
            raise

        self.logger.info(
            f"Restore finished: {len(report.names(ItemResult.SUCCESS))} succeeded, "
            f"{len(report.failures)} failed"
        )
        return report

    def _restore_secrets_item(self, date: str, report: RestoreReport) -> None:
        try:
            if self.restore_secrets(date):
                report.add(SECRETS_NAME, ItemResult.SUCCESS)
        except (ArchiveError, OSError) as e:
            self.logger.warning(f"Secrets restore failed: {e}")
            report.warn(f"secrets restore failed: {e}")

    def _restore_app_item(self, name: str, date: str, report: RestoreReport) -> None:
        app = get_app(name)
        if app is None:
            self.logger.warning(f"Skipping unknown app in backup: {name}")
            report.add(name, ItemResult.SKIPPED, "unknown app")
            return

        artifact = self.resolver.resolve(name, date)
        if artifact is None:
            report.add(name, ItemResult.FAILED, "backup not found")
            return

        try:
            self.restore_app(app, artifact)
        except RestoreError as e:
            message = str(e)
            if e.config_removed:
                message += " (previous config removed)"
            self.logger.error(f"Restore of {name} failed: {message}")
            report.add(name, ItemResult.FAILED, message)
            return
        report.add(name, ItemResult.SUCCESS)
