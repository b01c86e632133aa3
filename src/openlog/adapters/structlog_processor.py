"""
structlog integration.

Add an OpenLogProcessor to a structlog processor chain (before the
renderer) to ship every event dict through a LogTransport.
"""

import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional

from ..core.transport import LogTransport
from ..models.log_entry import LogEntry, LogLevel
from .base import RecordAdapter, extract_fields

INTERNAL_LOGGER = "openlog"


class StructlogAdapter(RecordAdapter):
    """Normalizes structlog event dicts."""

    def normalize(self, raw: MutableMapping[str, Any]) -> LogEntry:
        event = dict(raw)

        message = event.pop("event", "")
        level = LogLevel.from_name(event.pop("level", None))
        timestamp = self._timestamp(event.pop("timestamp", None))
        exc_info = event.pop("exc_info", None)
        exception = event.pop("exception", None)
        logger_name = event.pop("logger", None)

        record = {key: value for key, value in event.items() if not key.startswith("_")}
        fields, metadata = extract_fields(record)

        if "stack_trace" not in fields:
            stack = exception if isinstance(exception, str) else self._format_exc_info(exc_info)
            if stack:
                fields["stack_trace"] = stack

        if logger_name is not None:
            metadata.setdefault("logger", logger_name)

        return LogEntry(
            level=level,
            message="" if message is None else str(message),
            timestamp=timestamp,
            metadata=metadata,
            **fields,
        )

    @staticmethod
    def _timestamp(value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            # TimeStamper(fmt=None) writes epoch seconds
            return datetime.fromtimestamp(value, tz=timezone.utc)
        return value

    @staticmethod
    def _format_exc_info(exc_info: Any) -> Optional[str]:
        if not exc_info:
            return None
        if isinstance(exc_info, BaseException):
            exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
        elif not isinstance(exc_info, tuple):
            exc_info = sys.exc_info()
        if exc_info[0] is None:
            return None
        return "".join(traceback.format_exception(*exc_info))


class OpenLogProcessor:
    """
    structlog processor that submits each event to a transport.

    Returns the event dict unchanged so the rest of the chain (renderers,
    stdlib bridging) keeps working.
    """

    def __init__(self, transport: LogTransport, adapter: Optional[RecordAdapter] = None) -> None:
        self.transport = transport
        self.adapter = adapter or StructlogAdapter()

    def __call__(self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        if self._is_internal(event_dict):
            return event_dict

        record: Dict[str, Any] = dict(event_dict)
        record.setdefault("level", method_name)
        try:
            self.transport.submit_threadsafe(self.adapter.normalize(record))
        except Exception:
            # Same contract as logging.Handler.handleError: report, never raise.
            traceback.print_exc(file=sys.stderr)

        return event_dict

    @staticmethod
    def _is_internal(event_dict: MutableMapping[str, Any]) -> bool:
        name = event_dict.get("logger")
        if not isinstance(name, str):
            return False
        return name == INTERNAL_LOGGER or name.startswith(INTERNAL_LOGGER + ".")
