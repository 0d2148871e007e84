"""Host checks and filesystem skeleton used by disaster recovery."""

import os
from dataclasses import dataclass
from typing import Dict, List

from .errors import PreconditionError

SUPPORTED_DISTROS = ("debian", "ubuntu")
OS_RELEASE_PATH = "/etc/os-release"

DATA_SUBDIRS = [
    "downloads/movies",
    "downloads/tv",
    "downloads/music",
    "media/movies",
    "media/tv",
    "media/music",
]


@dataclass
class DistroInfo:
    id: str
    version_codename: str
    pretty_name: str


def read_os_release(path: str = OS_RELEASE_PATH) -> Dict[str, str]:
    """Parse an os-release file into a dictionary."""
    values = {}
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def detect_distro(path: str = OS_RELEASE_PATH) -> DistroInfo:
    """Detect the host distribution.

    Raises:
        PreconditionError: If os-release is missing or the distro is unsupported.
    """
    if not os.path.isfile(path):
        raise PreconditionError(f"Cannot detect distro: {path} not found")

    release = read_os_release(path)
    distro_id = release.get("ID", "").lower()
    if distro_id not in SUPPORTED_DISTROS:
        raise PreconditionError(
            f"Unsupported distro: {distro_id or 'unknown'}. Only Debian and Ubuntu are supported."
        )

    return DistroInfo(
        id=distro_id,
        version_codename=release.get("VERSION_CODENAME", ""),
        pretty_name=release.get("PRETTY_NAME", distro_id),
    )


def is_root() -> bool:
    return os.geteuid() == 0


def create_data_skeleton(base_dir: str) -> List[str]:
    """Create the shared media/download directory tree under ``base_dir``."""
    created = []
    for subdir in DATA_SUBDIRS:
        path = os.path.join(base_dir, "data", subdir)
        os.makedirs(path, exist_ok=True)
        created.append(path)
    return created
