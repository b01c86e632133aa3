"""
Command line entry point.

``openlog-ship`` reads NDJSON log lines (pino output, for example) from
stdin and ships them to an OpenLog ingestion server:

    node app.js | openlog-ship --endpoint-url https://logs.example.com --api-key ...
"""

import argparse
import asyncio
import logging
import sys
from typing import AsyncIterator, List, Optional

import structlog

from . import __version__
from .config import TransportConfig, get_config
from .core.exceptions import ConfigurationError
from .core.stream import ship_stream
from .core.transport import LogTransport


def configure_logging(log_level: str = "WARNING") -> None:
    """Configure structured logging for the CLI."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openlog-ship",
        description="Ship NDJSON log lines from stdin to an OpenLog ingestion server.",
    )
    parser.add_argument("--config", help="YAML config file (transport: section)")
    parser.add_argument("--endpoint-url", help="Ingestion server base URL")
    parser.add_argument("--api-key", help="Project API key")
    parser.add_argument("--service", help="Default service name for entries")
    parser.add_argument("--environment", help="Default environment for entries")
    parser.add_argument("--batch-size", type=int, help="Entries per batch")
    parser.add_argument("--flush-interval-ms", type=int, help="Timer flush interval")
    parser.add_argument("--retries", type=int, help="Delivery attempts per batch")
    parser.add_argument("--timeout-seconds", type=float, help="Per-request HTTP timeout")
    parser.add_argument("--max-buffer-size", type=int, help="Cap on buffered entries")
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Emit delivery diagnostics to stderr",
    )
    parser.add_argument(
        "--check-health",
        action="store_true",
        help="Probe the ingestion health route and exit",
    )
    parser.add_argument("--log-level", default="WARNING", help="CLI log level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


async def read_stdin_lines() -> AsyncIterator[str]:
    """Yield stdin lines without blocking the event loop."""
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        yield line


async def ship_stdin(config: TransportConfig) -> int:
    """Ship stdin until EOF, then close the transport. Returns entries submitted."""
    async with LogTransport(config) as transport:
        return await ship_stream(read_stdin_lines(), transport)


async def check_health(config: TransportConfig) -> bool:
    transport = LogTransport(config)
    try:
        return await transport.check_health()
    finally:
        await transport.close()


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and run the shipper. Returns the process exit status."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    logger = structlog.get_logger(__name__)

    try:
        config = get_config(
            args.config,
            endpoint_url=args.endpoint_url,
            api_key=args.api_key,
            service=args.service,
            environment=args.environment,
            batch_size=args.batch_size,
            flush_interval_ms=args.flush_interval_ms,
            retries=args.retries,
            timeout_seconds=args.timeout_seconds,
            max_buffer_size=args.max_buffer_size,
            debug=args.debug,
        )
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e), details=e.details)
        return 2

    if args.check_health:
        healthy = asyncio.run(check_health(config))
        logger.info("Health check finished", healthy=healthy, url=config.health_url)
        return 0 if healthy else 1

    submitted = asyncio.run(ship_stdin(config))
    logger.info("Shipping finished", submitted=submitted)
    return 0


def main() -> None:
    sys.exit(run())
