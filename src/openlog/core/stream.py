"""
Ship a stream of NDJSON log lines through a transport.
"""

from typing import AsyncIterable, Optional, Union

import structlog

from ..adapters.base import RecordAdapter
from ..adapters.records import DictRecordAdapter
from .transport import LogTransport

logger = structlog.get_logger(__name__)


async def ship_stream(
    source: AsyncIterable[Union[str, bytes]],
    transport: LogTransport,
    adapter: Optional[RecordAdapter] = None,
) -> int:
    """
    Normalize each line of ``source`` and submit it.

    Blank lines are ignored and lines that are not JSON objects are
    skipped. Does not flush or close the transport.

    Returns:
        Number of entries submitted.
    """
    adapter = adapter or DictRecordAdapter()
    submitted = 0

    async for line in source:
        if not line.strip():
            continue
        try:
            entry = adapter.normalize(line)
        except (ValueError, TypeError, OverflowError) as e:
            if transport.config.debug:
                logger.debug("Skipping unparseable record", error=str(e))
            continue

        transport.submit(entry)
        submitted += 1

    return submitted
