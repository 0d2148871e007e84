"""Archive naming scheme.

Archive directories are named ``YYYY-MM-DD`` so that sorting names
lexicographically also sorts them chronologically. Rotation and every
"most recent" lookup depend on that property.
"""

import os
import re
from datetime import datetime
from typing import Optional

ARCHIVE_EXTENSION = ".tar.zst"
SECRETS_NAME = "secrets"
LATEST = "latest"

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def archive_root(root: str) -> str:
    return os.path.join(root, "archive")


def archive_dir(root: str, date: str) -> str:
    return os.path.join(archive_root(root), date)


def artifact_filename(name: str) -> str:
    return f"{name}{ARCHIVE_EXTENSION}"


def archive_path(root: str, date: str, app: str) -> str:
    return os.path.join(archive_dir(root, date), artifact_filename(app))


def secrets_path(root: str, date: str) -> str:
    return archive_path(root, date, SECRETS_NAME)


def latest_dir(root: str) -> str:
    return os.path.join(root, LATEST)


def latest_path(root: str, app: str) -> str:
    return os.path.join(latest_dir(root), artifact_filename(app))


def remote_archive_dir(base_path: str, date: str) -> str:
    return f"{base_path.rstrip('/')}/{date}"


def remote_archive_path(base_path: str, date: str, app: str) -> str:
    return f"{remote_archive_dir(base_path, date)}/{artifact_filename(app)}"


def is_archive_date(name: str) -> bool:
    """True if ``name`` looks like an archive directory name."""
    return bool(DATE_PATTERN.match(name))


def is_valid_date_arg(value: str) -> bool:
    """Accept ``latest`` or a real calendar date in archive format."""
    if value == LATEST:
        return True
    if not is_archive_date(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def artifact_name(filename: str) -> Optional[str]:
    """App name for an artifact filename, or None for anything else."""
    if filename.endswith(ARCHIVE_EXTENSION) and len(filename) > len(ARCHIVE_EXTENSION):
        return filename[:-len(ARCHIVE_EXTENSION)]
    return None


def today(now: Optional[datetime] = None) -> str:
    """Archive directory name for the current local date."""
    return (now or datetime.now()).strftime("%Y-%m-%d")
