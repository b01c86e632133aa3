"""
Data models package.

Contains:
- Canonical log entry and level enum
- Ingestion response models
"""

from .log_entry import IngestResponse, IngestResult, LogEntry, LogLevel, format_timestamp

__all__ = [
    "LogEntry",
    "LogLevel",
    "IngestResponse",
    "IngestResult",
    "format_timestamp",
]
