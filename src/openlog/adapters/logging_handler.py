"""
Standard library logging integration.

OpenLogHandler ships records from the ``logging`` module through a
LogTransport, so existing ``logger.info(...)`` calls work unchanged.
"""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..config import TransportConfig
from ..core.runner import TransportThread
from ..core.transport import LogTransport
from ..models.log_entry import LogEntry, LogLevel
from .base import RecordAdapter, extract_fields

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

INTERNAL_LOGGER = "openlog"


def level_from_levelno(levelno: int) -> LogLevel:
    if levelno >= logging.CRITICAL:
        return LogLevel.FATAL
    if levelno >= logging.ERROR:
        return LogLevel.ERROR
    if levelno >= logging.WARNING:
        return LogLevel.WARN
    if levelno >= logging.INFO:
        return LogLevel.INFO
    return LogLevel.DEBUG


def _is_serializable(value: Any) -> bool:
    if isinstance(value, (str, int, float, bool, type(None))):
        return True
    if isinstance(value, (list, dict)):
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            return False
        return True
    return False


class LogRecordAdapter(RecordAdapter):
    """Normalizes ``logging.LogRecord`` objects."""

    def normalize(self, raw: logging.LogRecord) -> LogEntry:
        extras: Dict[str, Any] = {
            key: value
            for key, value in raw.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_") and _is_serializable(value)
        }
        fields, metadata = extract_fields(extras)

        if "stack_trace" not in fields:
            stack = self._stack_trace(raw)
            if stack:
                fields["stack_trace"] = stack

        metadata.setdefault("logger", raw.name)

        return LogEntry(
            level=level_from_levelno(raw.levelno),
            message=raw.getMessage(),
            timestamp=datetime.fromtimestamp(raw.created, tz=timezone.utc),
            metadata=metadata,
            **fields,
        )

    @staticmethod
    def _stack_trace(record: logging.LogRecord) -> Optional[str]:
        if record.exc_info and record.exc_info[0] is not None:
            return "".join(traceback.format_exception(*record.exc_info))
        if record.exc_text:
            return record.exc_text
        return record.stack_info or None


class OpenLogHandler(logging.Handler):
    """
    Logging handler that normalizes records and submits them to a transport.

    emit() never blocks on the network and never raises into the caller;
    failures go through the standard ``handleError`` path. Records from
    this package's own loggers are ignored to avoid feedback loops.
    """

    def __init__(
        self,
        transport: LogTransport,
        level: int = logging.NOTSET,
        adapter: Optional[RecordAdapter] = None,
    ) -> None:
        super().__init__(level=level)
        self.transport = transport
        self.adapter = adapter or LogRecordAdapter()

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == INTERNAL_LOGGER or record.name.startswith(INTERNAL_LOGGER + "."):
            return
        try:
            entry = self.adapter.normalize(record)
            self.transport.submit_threadsafe(entry)
        except Exception:
            # Never break application logging.
            self.handleError(record)


def setup_logging(
    transport: LogTransport,
    logger: Optional[logging.Logger] = None,
    level: int = logging.INFO,
) -> OpenLogHandler:
    """
    Attach an OpenLogHandler to ``logger`` (default: the root logger).

    Does not replace existing handlers. Calling it again for a logger that
    already has an OpenLogHandler returns the existing handler.
    """
    target_logger = logger or logging.getLogger()

    for existing in target_logger.handlers:
        if isinstance(existing, OpenLogHandler):
            return existing

    handler = OpenLogHandler(transport, level=level)
    target_logger.addHandler(handler)

    if target_logger.level == logging.NOTSET or target_logger.level > level:
        target_logger.setLevel(level)

    return handler


def setup_background_logging(
    config: TransportConfig,
    logger: Optional[logging.Logger] = None,
    level: int = logging.INFO,
) -> TransportThread:
    """
    Ship stdlib logging from a program without an event loop.

    Starts a TransportThread hosting a new LogTransport and attaches a
    handler feeding it. Stop the returned thread (or let atexit do it) to
    flush what is still buffered.
    """
    runner = TransportThread(LogTransport(config))
    runner.start()
    setup_logging(runner.transport, logger=logger, level=level)
    return runner
