"""Retention rotation for local and remote archive directories."""

import logging
import os
import shutil
from typing import List, Sequence

from .errors import CommandError
from .naming import archive_root, is_archive_date
from .rclone import RcloneRemote

logger = logging.getLogger(__name__)


def rotate(ids: Sequence[str], keep: int) -> List[str]:
    """Select the oldest archive ids that exceed the keep count.

    Args:
        ids: Archive ids sorted ascending (oldest first).
        keep: Number of most recent ids to keep.

    Returns:
        The prefix of ``ids`` that should be deleted.
    """
    if keep < 0:
        raise ValueError(f"keep must be non-negative, got {keep}")
    if len(ids) <= keep:
        return []
    return list(ids[:len(ids) - keep])


def list_local_archive_dates(root: str) -> List[str]:
    """Date-named directories under ``root/archive``, oldest first."""
    base = archive_root(root)
    if not os.path.isdir(base):
        return []
    return sorted(
        name for name in os.listdir(base)
        if is_archive_date(name) and os.path.isdir(os.path.join(base, name))
    )


def apply_local_retention(root: str, keep: int) -> List[str]:
    """Delete local archive directories beyond ``keep``.

    Returns:
        Archive dates that were deleted.
    """
    deleted = []
    for date in rotate(list_local_archive_dates(root), keep):
        shutil.rmtree(os.path.join(archive_root(root), date))
        logger.info(f"Rotated local backup: {date}")
        deleted.append(date)
    return deleted


def apply_remote_retention(remote: RcloneRemote, base_path: str, keep: int) -> List[str]:
    """Purge remote archive directories beyond ``keep``.

    A purge failure is logged and the date is left out of the result.

    Returns:
        Archive dates that were deleted.

    Raises:
        CommandError: If the remote listing fails.
    """
    deleted = []
    for date in rotate(remote.list_dirs(base_path), keep):
        try:
            remote.purge(f"{base_path.rstrip('/')}/{date}")
        except CommandError as e:
            logger.warning(f"Failed to delete remote backup {date}: {e.detail}")
            continue
        logger.info(f"Rotated remote backup: {date}")
        deleted.append(date)
    return deleted
