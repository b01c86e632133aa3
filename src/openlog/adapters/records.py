"""
Adapter for JSON object records (pino-style NDJSON).
"""

import json
import math
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from ..models.log_entry import LogEntry, LogLevel
from .base import RecordAdapter, extract_fields

# Pino numeric levels
PINO_LEVELS: Dict[int, LogLevel] = {
    10: LogLevel.DEBUG,
    20: LogLevel.DEBUG,
    30: LogLevel.INFO,
    40: LogLevel.WARN,
    50: LogLevel.ERROR,
    60: LogLevel.FATAL,
}

DROPPED_KEYS = ("pid", "hostname")


def level_from_number(value: int) -> LogLevel:
    """Map a numeric level, rounding custom levels down to the nearest known one."""
    if value in PINO_LEVELS:
        return PINO_LEVELS[value]
    if value >= 60:
        return LogLevel.FATAL
    if value >= 50:
        return LogLevel.ERROR
    if value >= 40:
        return LogLevel.WARN
    if value >= 30:
        return LogLevel.INFO
    return LogLevel.DEBUG


def timestamp_from_epoch_ms(value: Union[int, float]) -> datetime:
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


class DictRecordAdapter(RecordAdapter):
    """
    Normalizes JSON objects as written by pino and similar loggers.

    Accepts a mapping or one JSON line. Recognises ``level`` (number or
    name), ``time`` (epoch ms), ``msg``, ``err.stack``, ``responseTime``,
    ``res.statusCode`` and ``req.url`` / ``req.method`` in addition to the
    flat named fields. ``msg`` wins over ``message``; when both are present
    ``message`` is kept in metadata.

    Raises:
        ValueError: the line is not valid JSON
        TypeError: the record is not a JSON object
    """

    def normalize(self, raw: Any) -> LogEntry:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        if isinstance(raw, str):
            raw = json.loads(raw)
        if not isinstance(raw, Mapping):
            raise TypeError(f"Expected a JSON object, got {type(raw).__name__}")

        record = dict(raw)

        level = self._level(record.pop("level", None))
        time_value = record.pop("time", None)
        timestamp_value = record.pop("timestamp", None)
        msg = record.pop("msg", None)
        message = record.pop("message", None)
        err = record.pop("err", None)
        res = record.pop("res", None)
        req = record.pop("req", None)
        response_time = record.pop("responseTime", None)

        fields, metadata = extract_fields(record, exclude=DROPPED_KEYS)

        if "stack_trace" not in fields and isinstance(err, Mapping) and err.get("stack"):
            fields["stack_trace"] = err["stack"]
        if "duration" not in fields and response_time is not None:
            fields["duration"] = response_time
        if "status_code" not in fields and isinstance(res, Mapping) and res.get("statusCode") is not None:
            fields["status_code"] = res["statusCode"]
        if isinstance(req, Mapping):
            if "path" not in fields and req.get("url") is not None:
                fields["path"] = req["url"]
            if "method" not in fields and req.get("method") is not None:
                fields["method"] = req["method"]

        text = msg if msg is not None else message
        if msg is not None and message is not None:
            metadata["message"] = message

        return LogEntry(
            level=level,
            message="" if text is None else str(text),
            timestamp=self._timestamp(time_value if time_value is not None else timestamp_value),
            metadata=metadata,
            **fields,
        )

    @staticmethod
    def _level(value: Any) -> LogLevel:
        if isinstance(value, bool):
            return LogLevel.INFO
        if isinstance(value, (int, float)):
            # json.loads yields inf/nan for 1e400, Infinity and NaN
            if not math.isfinite(value):
                return LogLevel.INFO
            return level_from_number(int(value))
        return LogLevel.from_name(value)

    @staticmethod
    def _timestamp(value: Any) -> Optional[Union[datetime, str]]:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            try:
                return timestamp_from_epoch_ms(value)
            except (OverflowError, OSError, ValueError):
                return str(value)
        # datetimes and strings are passed through for the server to judge
        return value
