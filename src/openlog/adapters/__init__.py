"""
Host logging library adapters.

Each adapter turns one library's record shape into a LogEntry; the
handler and processor wire them to a LogTransport.
"""

from .base import RecordAdapter, extract_fields
from .logging_handler import LogRecordAdapter, OpenLogHandler, setup_background_logging, setup_logging
from .records import DictRecordAdapter
from .structlog_processor import OpenLogProcessor, StructlogAdapter

__all__ = [
    "RecordAdapter",
    "extract_fields",

    # JSON records (pino-style)
    "DictRecordAdapter",

    # stdlib logging
    "LogRecordAdapter",
    "OpenLogHandler",
    "setup_logging",
    "setup_background_logging",

    # structlog
    "StructlogAdapter",
    "OpenLogProcessor",
]
