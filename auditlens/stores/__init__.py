"""Persistence backends for analysis results."""

from .reports import ReportStore, StorageError

__all__ = ["ReportStore", "StorageError"]
