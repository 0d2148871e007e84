"""Creation and extraction of zstd-compressed tar artifacts."""

import logging
import os
from typing import List, Sequence

from .errors import ArchiveError, CommandError
from .models import AppDefinition
from .registry import COMPOSE_FILENAME, get_archive_members
from ..utils.shell import run_command

SECRETS_FILES = (".env", "config.yaml", "config.yml", "backup.conf")

COMPRESSION_FLAG = "--zstd"
PARTIAL_SUFFIX = ".partial"


class Archiver:
    """Builds app and secrets artifacts with ``tar --zstd``."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def create_app_archive(self, app: AppDefinition, base_dir: str, output_path: str) -> List[str]:
        """Archive an app's config directories and compose file.

        Entries are stored relative to ``base_dir`` (``radarr/config/...``,
        ``radarr/docker-compose.yml``) so extracting into the base directory
        restores the original layout.

        Args:
            app: App to archive.
            base_dir: Directory holding the app directories.
            output_path: Artifact path to write.

        Returns:
            Archive members that were included.

        Raises:
            ArchiveError: If the app is not installed or tar fails.
        """
        compose_member = f"{app.name}/{COMPOSE_FILENAME}"
        members = [m for m in get_archive_members(app) if os.path.exists(os.path.join(base_dir, m))]

        if compose_member not in members:
            raise ArchiveError(f"{app.name}: {COMPOSE_FILENAME} not found in {os.path.join(base_dir, app.name)}")
        if len(members) < 2:
            raise ArchiveError(f"{app.name}: no config directories found under {os.path.join(base_dir, app.name)}")

        self._create(output_path, base_dir, members)
        return members

    def create_secrets_archive(self, project_root: str, output_path: str) -> List[str]:
        """Archive whichever secrets files exist in the project root.

        Returns:
            Files included; empty (and no artifact written) when none exist.
        """
        existing = [name for name in SECRETS_FILES if os.path.isfile(os.path.join(project_root, name))]
        if not existing:
            self.logger.info("No secrets files found, skipping secrets backup")
            return []

        self._create(output_path, project_root, existing)
        return existing

    def extract(self, archive_path: str, dest_dir: str) -> None:
        """Extract an artifact into ``dest_dir``.

        Raises:
            ArchiveError: If tar fails.
        """
        try:
            run_command(["tar", COMPRESSION_FLAG, "-xf", archive_path, "-C", dest_dir])
        except CommandError as e:
            raise ArchiveError(f"Failed to extract {archive_path}: {e.detail}")

    def list_members(self, archive_path: str) -> List[str]:
        result = run_command(["tar", COMPRESSION_FLAG, "-tf", archive_path])
        return [line.rstrip("/") for line in result.stdout.splitlines() if line.strip()]

    def _create(self, output_path: str, source_dir: str, members: Sequence[str]) -> None:
        # The artifact only appears under its final name once tar has succeeded.
        partial_path = output_path + PARTIAL_SUFFIX
        try:
            run_command(["tar", COMPRESSION_FLAG, "-cf", partial_path, "-C", source_dir, *members])
        except CommandError as e:
            if os.path.exists(partial_path):
                os.remove(partial_path)
            raise ArchiveError(f"Failed to create {output_path}: {e.detail}")

        os.replace(partial_path, output_path)
        self.logger.debug(f"Wrote {output_path} ({', '.join(members)})")
