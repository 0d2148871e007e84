"""Data models for backup, restore and recovery."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class SingleDir:
    """App keeps its state in one config directory."""
    subdir: str
    container_path: str = "/config"

    def subdirs(self) -> List[str]:
        return [self.subdir]

    def mounts(self) -> List[Tuple[str, str]]:
        return [(self.subdir, self.container_path)]


@dataclass(frozen=True)
class MultipleDirs:
    """App keeps its state in several directories, each mounted separately."""
    dirs: Tuple[Tuple[str, str], ...]

    def subdirs(self) -> List[str]:
        return [subdir for subdir, _ in self.dirs]

    def mounts(self) -> List[Tuple[str, str]]:
        return list(self.dirs)


ConfigLayout = Union[SingleDir, MultipleDirs]


@dataclass(frozen=True)
class PortMapping:
    host: int
    container: int
    protocol: Optional[str] = None


@dataclass(frozen=True)
class VolumeMount:
    """Extra volume; relative host paths are resolved against the app directory."""
    host: str
    container: str
    options: Optional[str] = None


@dataclass(frozen=True)
class Healthcheck:
    test: str
    start_period: Optional[str] = None
    timeout: Optional[str] = None
    interval: Optional[str] = None
    retries: Optional[int] = None


@dataclass(frozen=True)
class AppDefinition:
    """Static description of one self-hosted application."""
    name: str
    display_name: str
    image: str
    layout: ConfigLayout
    port: Optional[int] = None
    container_name: Optional[str] = None
    network_mode: Optional[str] = None
    needs_data_dir: bool = False
    data_dir_read_only: bool = False
    mount_music_dir: bool = False
    mount_docker_socket: bool = False
    user_from_env: bool = False
    init: bool = False
    extra_ports: Tuple[PortMapping, ...] = ()
    extra_volumes: Tuple[VolumeMount, ...] = ()
    cap_add: Tuple[str, ...] = ()
    sysctls: Tuple[Tuple[str, str], ...] = ()
    environment: Tuple[Tuple[str, str], ...] = ()
    # (.env variable, compose variable)
    secret_env: Tuple[Tuple[str, str], ...] = ()
    healthcheck: Optional[Healthcheck] = None
    restart_policy: str = "unless-stopped"

    @property
    def container(self) -> str:
        return self.container_name or self.name


@dataclass
class ItemResult:
    """Outcome for one app (or the secrets bundle) within a batch."""
    name: str
    status: str
    message: Optional[str] = None

    SUCCESS = 'success'
    SKIPPED = 'skipped'
    FAILED = 'failed'

    @property
    def failed(self) -> bool:
        return self.status == self.FAILED


@dataclass
class OperationReport:
    """Per-item results and warnings collected over a batch operation."""
    items: List[ItemResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add(self, name: str, status: str, message: Optional[str] = None) -> ItemResult:
        item = ItemResult(name=name, status=status, message=message)
        self.items.append(item)
        return item

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    @property
    def failures(self) -> List[ItemResult]:
        return [item for item in self.items if item.failed]

    @property
    def ok(self) -> bool:
        return not self.failures

    def names(self, status: Optional[str] = None) -> List[str]:
        return [item.name for item in self.items if status is None or item.status == status]


@dataclass
class BackupReport(OperationReport):
    date: str = ""
    rotated_local: List[str] = field(default_factory=list)
    rotated_remote: List[str] = field(default_factory=list)
    uploaded: bool = False


@dataclass
class RestoreReport(OperationReport):
    date: str = "latest"
    cancelled: bool = False


@dataclass
class RecoveryReport(OperationReport):
    date: Optional[str] = None
    cancelled: bool = False
    timer_installed: bool = False


@dataclass
class ArchiveEntry:
    """A local archive directory as shown by ``backup list local``."""
    date: str
    path: str
    artifacts: List[str]
    total_size: int


@dataclass
class Discovery:
    """Artifacts available for a full restore or recovery."""
    date: str
    names: List[str]
    # name -> "latest", "local" or "remote"
    sources: Dict[str, str] = field(default_factory=dict)
