"""
OpenLog - Python SDK log transport

Buffers structured log entries from application code and ships them in
batches to an OpenLog ingestion server, with retry, backoff and
requeue on failure.
"""

__version__ = "0.1.0"

from .config import TransportConfig, get_config
from .core.client import IngestClient
from .core.exceptions import (
    BatchExhaustion,
    ConfigurationError,
    DeliveryFailure,
    OpenLogException,
    TransportClosedError,
)
from .core.runner import TransportThread
from .core.transport import LogTransport, TransportState
from .models.log_entry import LogEntry, LogLevel

__all__ = [
    "TransportConfig",
    "get_config",
    "IngestClient",
    "LogTransport",
    "TransportState",
    "TransportThread",
    "LogEntry",
    "LogLevel",

    # Exceptions
    "OpenLogException",
    "ConfigurationError",
    "DeliveryFailure",
    "BatchExhaustion",
    "TransportClosedError",
]
