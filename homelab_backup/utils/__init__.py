"""Utility modules for homelab backup."""

from .formatters import format_file_size, format_date, get_age_indicator, status_marker
from .shell import run_command, command_exists, CommandResult

__all__ = [
    "format_file_size",
    "format_date",
    "get_age_indicator",
    "status_marker",
    "run_command",
    "command_exists",
    "CommandResult",
]
