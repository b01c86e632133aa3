"""
Log entry data models.

- LogEntry: canonical, producer-agnostic record buffered by the transport
- Wire format: camelCase JSON, ISO 8601 timestamps, absent fields omitted
- IngestResponse: lenient view of the server's batch acknowledgement
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class LogLevel(str, Enum):
    """Allowed log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @classmethod
    def from_name(cls, value: Any) -> "LogLevel":
        """
        Coerce a host logging library's level name.

        Unknown names fall back to INFO.
        """
        if isinstance(value, LogLevel):
            return value
        if not isinstance(value, str):
            return cls.INFO
        return _LEVEL_ALIASES.get(value.strip().lower(), cls.INFO)


_LEVEL_ALIASES: Dict[str, LogLevel] = {
    "trace": LogLevel.DEBUG,
    "debug": LogLevel.DEBUG,
    "verbose": LogLevel.DEBUG,
    "silly": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "notice": LogLevel.INFO,
    "http": LogLevel.INFO,
    "warn": LogLevel.WARN,
    "warning": LogLevel.WARN,
    "error": LogLevel.ERROR,
    "err": LogLevel.ERROR,
    "exception": LogLevel.ERROR,
    "fatal": LogLevel.FATAL,
    "critical": LogLevel.FATAL,
    "crit": LogLevel.FATAL,
    "alert": LogLevel.FATAL,
    "emerg": LogLevel.FATAL,
}

# Attribute name -> JSON key, in wire order.
WIRE_FIELDS = (
    ("trace_id", "traceId"),
    ("span_id", "spanId"),
    ("parent_span_id", "parentSpanId"),
    ("service", "service"),
    ("environment", "environment"),
    ("stack_trace", "stackTrace"),
    ("tags", "tags"),
    ("duration", "duration"),
    ("status_code", "statusCode"),
    ("path", "path"),
    ("method", "method"),
    ("user_id", "userId"),
)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO 8601 UTC with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class LogEntry:
    """
    Individual log entry.

    ``level`` and ``message`` are always present; every other field may be
    absent. ``metadata`` holds only residual producer fields and never
    repeats a named field. No validation happens here: malformed optional
    values are passed through for the ingestion server to judge.
    """

    level: Union[LogLevel, str]
    message: str
    timestamp: Optional[Union[datetime, str]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    parent_span_id: Optional[str] = None
    service: Optional[str] = None
    environment: Optional[str] = None
    stack_trace: Optional[str] = None
    tags: Optional[List[str]] = None
    duration: Optional[Union[int, float]] = None
    status_code: Optional[int] = None
    path: Optional[str] = None
    method: Optional[str] = None
    user_id: Optional[str] = None

    def with_defaults(
        self,
        service: Optional[str] = None,
        environment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "LogEntry":
        """Return a copy with deployment defaults and a timestamp filled in."""
        return replace(
            self,
            timestamp=self.timestamp if self.timestamp is not None else (now or datetime.now(timezone.utc)),
            service=self.service if self.service is not None else service,
            environment=self.environment if self.environment is not None else environment,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the ingestion wire format."""
        timestamp = self.timestamp
        if isinstance(timestamp, datetime):
            timestamp = format_timestamp(timestamp)

        level = self.level.value if isinstance(self.level, LogLevel) else self.level

        data: Dict[str, Any] = {
            "timestamp": timestamp,
            "level": level,
            "message": self.message,
            # JSON object keys must be strings
            "metadata": {str(key): value for key, value in (self.metadata or {}).items()},
        }
        if timestamp is None:
            del data["timestamp"]

        for attr, key in WIRE_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value

        return data


class IngestResult(BaseModel):
    """Identifiers assigned to an accepted batch."""

    count: int = 0
    ids: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class IngestResponse(BaseModel):
    """
    Batch ingestion acknowledgement.

    Only the HTTP status decides success; this model is read for
    diagnostics and tolerates extra or missing fields.
    """

    success: bool = True
    data: Optional[IngestResult] = None
    error: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def accepted(self) -> int:
        return self.data.count if self.data else 0
