"""Core backup, restore and recovery functionality."""

from .errors import (
    ArchiveError,
    ArtifactNotFoundError,
    CommandError,
    HomelabBackupError,
    InvalidTransition,
    PreconditionError,
    RemoteUnavailableError,
    RestoreError,
)
from .models import AppDefinition, BackupReport, ItemResult, RecoveryReport, RestoreReport

__all__ = [
    "AppDefinition",
    "ArchiveError",
    "ArtifactNotFoundError",
    "BackupReport",
    "CommandError",
    "HomelabBackupError",
    "InvalidTransition",
    "ItemResult",
    "PreconditionError",
    "RecoveryReport",
    "RemoteUnavailableError",
    "RestoreError",
    "RestoreReport",
]
