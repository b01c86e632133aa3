"""
Async HTTP client for the ingestion server.

Features:
- POST /api/ingest/batch with the project API key
- Maps non-2xx responses and network errors to DeliveryFailure
- GET /api/ingest/health probe
- Lazily created aiohttp session, or a caller-owned one
"""

import asyncio
import json
from typing import Any, Dict, Optional, Sequence

import aiohttp
import structlog
from pydantic import ValidationError

from .. import __version__
from ..config import TransportConfig
from ..models.log_entry import IngestResponse, LogEntry
from .exceptions import DeliveryFailure

logger = structlog.get_logger(__name__)

USER_AGENT = f"openlog-python/{__version__}"
ERROR_BODY_PREVIEW = 200


class IngestClient:
    """
    Sends log batches to the ingestion endpoint.

    The client only classifies outcomes; retries and backoff belong to the
    transport that owns the buffer.
    """

    def __init__(
        self,
        config: TransportConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config
        self.session = session
        self._owns_session = session is None

    async def start(self) -> aiohttp.ClientSession:
        """Open the HTTP session if needed and return it."""
        if self.session is not None and not self.session.closed:
            return self.session

        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
        )
        self.session = session
        self._owns_session = True
        return session

    async def stop(self) -> None:
        """Close the HTTP session unless the caller supplied it."""
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.config.api_key,
            "User-Agent": USER_AGENT,
        }

    async def send_batch(self, entries: Sequence[LogEntry]) -> Optional[IngestResponse]:
        """
        Deliver one batch in a single request.

        Returns:
            The parsed acknowledgement, or None when the 2xx body is not in
            the documented shape.

        Raises:
            DeliveryFailure: non-2xx status or network-level error.
        """
        session = await self.start()

        try:
            data = _dumps(build_payload(entries))
        except (TypeError, ValueError) as e:
            raise DeliveryFailure(
                f"Unserializable batch: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        try:
            async with session.post(
                self.config.batch_url,
                data=data,
                headers=self._headers(),
            ) as response:
                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    raise DeliveryFailure(
                        f"HTTP {response.status}: {response.reason}",
                        status_code=response.status,
                        details={"body": error_text[:ERROR_BODY_PREVIEW]},
                    )
                body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise DeliveryFailure(
                f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
                details={"error_type": type(e).__name__},
            ) from e

        return _parse_response(body)

    async def check_health(self) -> bool:
        """Probe the ingestion health route. Never raises."""
        try:
            session = await self.start()
            async with session.get(self.config.health_url, headers=self._headers()) as response:
                if not 200 <= response.status < 300:
                    return False
                data = await response.json(content_type=None)
                return isinstance(data, dict) and data.get("status") == "ok"
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            if self.config.debug:
                logger.warning("Ingestion health check failed", url=self.config.health_url, error=str(e))
            return False


def _dumps(obj: Any) -> str:
    # default=str keeps non-JSON metadata values (datetimes, UUIDs, ...) sendable
    return json.dumps(obj, default=str)


def check_serializable(entry: LogEntry) -> None:
    """
    Encode ``entry`` once and discard the result.

    Raises:
        TypeError, ValueError: the entry cannot be sent as JSON (for
            example a circular reference in its metadata).
    """
    _dumps(entry.to_dict())


def _parse_response(body: str) -> Optional[IngestResponse]:
    if not body:
        return None
    try:
        return IngestResponse.model_validate_json(body)
    except ValidationError:
        return None


def build_payload(entries: Sequence[LogEntry]) -> Dict[str, Any]:
    """Request body for a batch, as sent on the wire."""
    return {"logs": [entry.to_dict() for entry in entries]}
