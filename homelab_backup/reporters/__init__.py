"""Reporting modules for homelab backup."""

from .summary_reporter import SummaryReporter

__all__ = ["SummaryReporter"]
