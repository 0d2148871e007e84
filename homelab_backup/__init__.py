"""
Homelab Backup - backup, restore and disaster recovery for self-hosted apps.

This package archives the configuration of Docker-based homelab apps,
mirrors the archives to an rclone remote, and rebuilds a bare host from
the newest remote backup.
"""

__version__ = "1.0.0"

from .core.backup import BackupExecutor
from .core.recovery import DisasterRecovery
from .core.resolver import ArtifactResolver
from .core.restore import RestoreExecutor
from .reporters.summary_reporter import SummaryReporter

__all__ = ["BackupExecutor", "DisasterRecovery", "ArtifactResolver", "RestoreExecutor", "SummaryReporter"]
