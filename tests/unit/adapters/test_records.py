"""
Tests for field extraction and the JSON record (pino-style) adapter.
"""

import json
from datetime import datetime, timezone

import pytest

from openlog.adapters.base import extract_fields
from openlog.adapters.records import DictRecordAdapter, level_from_number
from openlog.models.log_entry import LogLevel


class TestExtractFields:
    """Test named-field extraction versus residual metadata."""

    def test_named_fields_never_repeated_in_metadata(self) -> None:
        """Test extraction and residual collection are mutually exclusive."""

        fields, metadata = extract_fields(
            {"traceId": "t", "statusCode": 200, "userId": "u", "cart": 3}
        )

        assert fields == {"trace_id": "t", "status_code": 200, "user_id": "u"}
        assert metadata == {"cart": 3}

    def test_snake_case_aliases(self) -> None:
        """Test snake_case keys are recognised too."""

        fields, metadata = extract_fields({"trace_id": "t", "span_id": "s", "stack": "trace"})

        assert fields == {"trace_id": "t", "span_id": "s", "stack_trace": "trace"}
        assert metadata == {}

    def test_duplicate_aliases_consumed(self) -> None:
        """Test the first alias wins and the other is not left in metadata."""

        fields, metadata = extract_fields({"traceId": "camel", "trace_id": "snake"})

        assert fields == {"trace_id": "camel"}
        assert metadata == {}

    def test_excluded_keys_dropped(self) -> None:
        """Test excluded keys go nowhere."""

        fields, metadata = extract_fields({"pid": 1, "hostname": "h", "a": 1}, exclude=("pid", "hostname"))

        assert fields == {}
        assert metadata == {"a": 1}


class TestPinoLevels:
    """Test numeric level mapping."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (10, LogLevel.DEBUG),
            (20, LogLevel.DEBUG),
            (30, LogLevel.INFO),
            (40, LogLevel.WARN),
            (50, LogLevel.ERROR),
            (60, LogLevel.FATAL),
            (35, LogLevel.INFO),
            (99, LogLevel.FATAL),
            (0, LogLevel.DEBUG),
        ],
    )
    def test_level_from_number(self, value: int, expected: LogLevel) -> None:
        """Test standard and custom numeric levels."""

        assert level_from_number(value) == expected


class TestDictRecordAdapter:
    """Test normalization of pino-style records."""

    def test_pino_line(self) -> None:
        """Test a typical pino NDJSON line."""

        line = json.dumps(
            {
                "level": 50,
                "time": 1758537000123,
                "pid": 4242,
                "hostname": "web-1",
                "msg": "request failed",
                "traceId": "abc",
                "orderId": 17,
                "err": {"type": "Error", "message": "boom", "stack": "Error: boom\n    at x"},
                "req": {"url": "/orders", "method": "POST"},
                "res": {"statusCode": 500},
                "responseTime": 41,
            }
        )

        entry = DictRecordAdapter().normalize(line)

        assert entry.level == LogLevel.ERROR
        assert entry.message == "request failed"
        assert entry.timestamp == datetime(2025, 9, 22, 10, 30, 0, 123000, tzinfo=timezone.utc)
        assert entry.trace_id == "abc"
        assert entry.stack_trace == "Error: boom\n    at x"
        assert entry.path == "/orders"
        assert entry.method == "POST"
        assert entry.status_code == 500
        assert entry.duration == 41
        assert entry.metadata == {"orderId": 17}

    def test_flat_fields_win_over_nested(self) -> None:
        """Test explicit flat fields take precedence over req/res fallbacks."""

        entry = DictRecordAdapter().normalize(
            {"msg": "m", "statusCode": 201, "res": {"statusCode": 500}, "path": "/a", "req": {"url": "/b"}}
        )

        assert entry.status_code == 201
        assert entry.path == "/a"

    def test_string_level_and_message_key(self) -> None:
        """Test named levels and a plain message key."""

        entry = DictRecordAdapter().normalize({"level": "warning", "message": "careful"})

        assert entry.level == LogLevel.WARN
        assert entry.message == "careful"
        assert entry.timestamp is None

    def test_msg_and_message_both_kept(self) -> None:
        """Test msg becomes the message and message survives in metadata."""

        entry = DictRecordAdapter().normalize({"msg": "primary", "message": "secondary", "a": 1})

        assert entry.message == "primary"
        assert entry.metadata == {"a": 1, "message": "secondary"}

    @pytest.mark.parametrize("line", ['{"level": 1e400}', '{"level": -1e400}', '{"level": NaN}'])
    def test_non_finite_level_defaults_to_info(self, line: str) -> None:
        """Test levels json decodes to inf or nan fall back to info."""

        assert DictRecordAdapter().normalize(line).level == LogLevel.INFO

    def test_missing_level_defaults_to_info(self) -> None:
        """Test records without a level are info."""

        assert DictRecordAdapter().normalize({"msg": "x"}).level == LogLevel.INFO

    def test_string_time_passed_through(self) -> None:
        """Test non-numeric times are left for the server to judge."""

        entry = DictRecordAdapter().normalize({"msg": "x", "time": "2025-09-22T10:30:00Z"})

        assert entry.timestamp == "2025-09-22T10:30:00Z"

    def test_bytes_line(self) -> None:
        """Test raw bytes from a pipe are accepted."""

        entry = DictRecordAdapter().normalize(b'{"level": 30, "msg": "from bytes"}')

        assert entry.message == "from bytes"

    def test_invalid_json_raises_value_error(self) -> None:
        """Test unparsable lines raise ValueError."""

        with pytest.raises(ValueError):
            DictRecordAdapter().normalize("not json")

    def test_non_object_raises_type_error(self) -> None:
        """Test JSON that is not an object raises TypeError."""

        with pytest.raises(TypeError):
            DictRecordAdapter().normalize("[1, 2, 3]")
