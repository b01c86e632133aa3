"""
Record adapters: host logging library record -> LogEntry.

Each host library gets one adapter implementing ``normalize``. Named
fields are extracted first and whatever is left becomes metadata, so a
key never lands in both places.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Mapping, Tuple

from ..models.log_entry import LogEntry

# LogEntry attribute -> producer keys accepted for it, first match wins.
NAMED_FIELDS: Dict[str, Tuple[str, ...]] = {
    "trace_id": ("traceId", "trace_id"),
    "span_id": ("spanId", "span_id"),
    "parent_span_id": ("parentSpanId", "parent_span_id"),
    "service": ("service",),
    "environment": ("environment",),
    "stack_trace": ("stackTrace", "stack_trace", "stack"),
    "tags": ("tags",),
    "duration": ("duration",),
    "status_code": ("statusCode", "status_code"),
    "path": ("path",),
    "method": ("method",),
    "user_id": ("userId", "user_id"),
}


def extract_fields(
    record: Mapping[str, Any],
    exclude: Iterable[str] = (),
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Split a flat record into named LogEntry fields and residual metadata.

    Every recognised key is consumed, even when an earlier alias already
    supplied the value. Keys in ``exclude`` are dropped entirely.
    """
    fields: Dict[str, Any] = {}
    consumed = set(exclude)

    for attr, keys in NAMED_FIELDS.items():
        for key in keys:
            if key not in record:
                continue
            consumed.add(key)
            value = record[key]
            if attr not in fields and value is not None:
                fields[attr] = value

    metadata = {key: value for key, value in record.items() if key not in consumed}
    return fields, metadata


class RecordAdapter(ABC):
    """Translates one host library's record shape into a LogEntry."""

    @abstractmethod
    def normalize(self, raw: Any) -> LogEntry:
        """Build a LogEntry from a host record."""
