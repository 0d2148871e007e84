"""Final per-item summaries for backup, restore and recovery runs."""

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.models import ArchiveEntry, BackupReport, ItemResult, OperationReport, RecoveryReport, RestoreReport
from ..utils.formatters import (
    format_date,
    format_file_size,
    get_age_indicator,
    status_marker,
    truncate_string,
)


class SummaryReporter:
    """Renders operation reports as text or JSON."""

    WIDTH = 60

    def __init__(self, width: Optional[int] = None):
        self.width = width or self.WIDTH

    def to_dict(self, report: OperationReport) -> Dict[str, Any]:
        """JSON-serializable form of a report, with its overall outcome."""
        data = asdict(report)
        data['ok'] = report.ok
        if isinstance(report, BackupReport):
            data['operation'] = 'backup'
        elif isinstance(report, RestoreReport):
            data['operation'] = 'restore'
        elif isinstance(report, RecoveryReport):
            data['operation'] = 'recover'
        return data

    def render_json(self, report: OperationReport) -> str:
        return json.dumps(self.to_dict(report), indent=2)

    def render_text(self, title: str, report: OperationReport) -> str:
        """Render a report as a plain-text summary.

        Args:
            title: Heading, e.g. "BACKUP SUMMARY".
            report: Report to render.

        Returns:
            Summary text, one line per item followed by any warnings.
        """
        lines = [
            "=" * self.width,
            title,
            f"Generated: {format_date(datetime.now())}",
            "=" * self.width,
        ]

        date = getattr(report, 'date', None)
        if date:
            lines.append(f"Archive: {date}")

        if getattr(report, 'cancelled', False):
            lines.extend(["Cancelled, nothing was changed.", "=" * self.width])
            return "\n".join(lines)

        if not report.items:
            lines.append("No items processed.")

        name_width = max([len(item.name) for item in report.items] + [10])
        for item in report.items:
            line = f"  {status_marker(item.status)} {item.name:<{name_width}} {item.status}"
            if item.message:
                line += f": {truncate_string(item.message, self.width * 2)}"
            lines.append(line)

        if isinstance(report, BackupReport):
            if report.rotated_local:
                lines.append(f"Rotated local: {', '.join(report.rotated_local)}")
            if report.rotated_remote:
                lines.append(f"Rotated remote: {', '.join(report.rotated_remote)}")
            lines.append(f"Uploaded: {'yes' if report.uploaded else 'no'}")
        elif isinstance(report, RecoveryReport):
            lines.append(f"Backup timer: {'installed' if report.timer_installed else 'not installed'}")

        if report.warnings:
            lines.extend(["", "Warnings:"])
            lines.extend(f"  ! {warning}" for warning in report.warnings)

        succeeded = len(report.names(ItemResult.SUCCESS))
        lines.extend([
            "",
            f"{succeeded} of {len(report.items)} succeeded, {len(report.failures)} failed",
            "=" * self.width,
        ])
        return "\n".join(lines)

    def render_archive_list(self, entries, location: str) -> str:
        """Table of archive directories for ``backup list``."""
        if not entries:
            return f"No {location} backups found"

        lines = [f"{'Date':<12} {'Age':>10} {'Size':>8}  Artifacts", f"{'-' * 12} {'-' * 10} {'-' * 8}  {'-' * 30}"]
        for entry in entries:
            if isinstance(entry, ArchiveEntry):
                lines.append(
                    f"{entry.date:<12} {get_age_indicator(entry.date):>10} {format_file_size(entry.total_size):>8}  "
                    f"{truncate_string(', '.join(entry.artifacts) or '(empty)', 50)}"
                )
            else:
                lines.append(f"{entry:<12} {get_age_indicator(entry):>10} {'-':>8}")
        return "\n".join(lines)
