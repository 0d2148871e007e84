"""Formatting utilities for command output and reports."""

from datetime import date, datetime
from typing import Optional

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_file_size(size_bytes: int) -> str:
    """Format an archive size for the ``backup list`` table.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Size with one decimal above kilobytes, e.g. "512B", "3KB", "1.5GB".
    """
    size = float(size_bytes)
    for unit in SIZE_UNITS:
        if size < 1024 or unit == SIZE_UNITS[-1]:
            break
        size /= 1024

    if unit in ("B", "KB"):
        return f"{int(size)}{unit}"
    return f"{size:.1f}{unit}"


def format_date(dt: datetime) -> str:
    """Timestamp shown in summary headers."""
    return dt.strftime('%Y-%m-%d %H:%M:%S')


def get_age_indicator(archive_date: str, today: Optional[date] = None) -> str:
    """Describe how old an archive directory is.

    Args:
        archive_date: Archive directory name (YYYY-MM-DD).
        today: Reference date, defaults to the current local date.

    Returns:
        Short age label such as "today", "1 day" or "12 days".
    """
    try:
        created = datetime.strptime(archive_date, '%Y-%m-%d').date()
    except ValueError:
        return "unknown"

    days_old = ((today or date.today()) - created).days
    if days_old <= 0:
        return "today"
    elif days_old == 1:
        return "1 day"
    return f"{days_old} days"


def status_marker(status: str) -> str:
    """Map an item status to the marker used in summaries."""
    return {
        'success': '✓',
        'skipped': '-',
        'failed': '✗',
    }.get(status, '?')


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncate string to maximum length.

    Args:
        text: Text to truncate.
        max_length: Maximum length.
        suffix: Suffix to add when truncating.

    Returns:
        Truncated string.
    """
    if len(text) <= max_length:
        return text

    return text[:max_length - len(suffix)] + suffix
