"""
Pytest configuration and shared fixtures.

Contains common test fixtures, fakes and a local fake ingestion server.
"""

import asyncio
import itertools
import os
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Union

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from openlog.config import ENV_PREFIX, TransportConfig
from openlog.core.exceptions import DeliveryFailure
from openlog.core.transport import LogTransport
from openlog.models.log_entry import IngestResponse, LogEntry, LogLevel

Outcome = Optional[Union[Exception, IngestResponse]]


class FakeIngestClient:
    """
    Stand-in for IngestClient with scripted per-attempt outcomes.

    Each send consumes the next outcome: None means success, an exception
    is raised. Once the script runs out every send uses ``fallback``.
    """

    def __init__(self, outcomes: Optional[Sequence[Outcome]] = None) -> None:
        self.outcomes: List[Outcome] = list(outcomes or [])
        self.fallback: Outcome = None
        self.attempts: List[List[LogEntry]] = []
        self.delivered: List[List[LogEntry]] = []
        self.healthy = True
        self.stopped = False
        self.gate: Optional[asyncio.Event] = None
        self.on_send: Optional[Callable[[List[LogEntry]], None]] = None

    async def send_batch(self, entries: Sequence[LogEntry]) -> Optional[IngestResponse]:
        batch = list(entries)
        self.attempts.append(batch)
        if self.on_send is not None:
            self.on_send(batch)
        if self.gate is not None:
            await self.gate.wait()

        outcome = self.outcomes.pop(0) if self.outcomes else self.fallback
        if isinstance(outcome, Exception):
            raise outcome

        self.delivered.append(batch)
        return outcome

    async def check_health(self) -> bool:
        return self.healthy

    async def stop(self) -> None:
        self.stopped = True

    @property
    def delivered_messages(self) -> List[str]:
        return [entry.message for batch in self.delivered for entry in batch]


class RecordingSleep:
    """Backoff sleep that records requested delays without waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []
        self.on_sleep: Optional[Callable[[float], None]] = None

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.on_sleep is not None:
            self.on_sleep(delay)
        await asyncio.sleep(0)


def server_error(status_code: int = 500) -> DeliveryFailure:
    return DeliveryFailure(f"HTTP {status_code}: Internal Server Error", status_code=status_code)


def make_entry(message: str, level: LogLevel = LogLevel.INFO, **fields: Any) -> LogEntry:
    return LogEntry(level=level, message=message, **fields)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep OPENLOG_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.upper().startswith(ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_values() -> Dict[str, Any]:
    """Minimal valid transport configuration."""
    return {
        "endpoint_url": "https://logs.example.com",
        "api_key": "olk_test_key_123",
        "batch_size": 10,
        "flush_interval_ms": 5000,
        "retries": 3,
    }


@pytest.fixture
def make_config(config_values: Dict[str, Any]) -> Callable[..., TransportConfig]:
    def factory(**overrides: Any) -> TransportConfig:
        return TransportConfig(**{**config_values, **overrides})

    return factory


@pytest.fixture
def config(make_config: Callable[..., TransportConfig]) -> TransportConfig:
    return make_config()


@pytest.fixture
def fake_client() -> FakeIngestClient:
    return FakeIngestClient()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_transport(
    make_config: Callable[..., TransportConfig],
    fake_client: FakeIngestClient,
    recording_sleep: RecordingSleep,
) -> Callable[..., LogTransport]:
    """Build transports wired to the fake client and recording sleep."""

    def factory(on_error: Optional[Callable[..., Any]] = None, **overrides: Any) -> LogTransport:
        return LogTransport(
            make_config(**overrides),
            client=fake_client,  # type: ignore[arg-type]
            on_error=on_error,
            sleep=recording_sleep,
        )

    return factory


class FakeIngestServer:
    """
    Minimal ingestion endpoint.

    ``statuses`` scripts the batch route's response codes; once exhausted
    every request is accepted.
    """

    def __init__(self) -> None:
        self.requests: List[Dict[str, Any]] = []
        self.statuses: List[int] = []
        self.health_status = 200
        self.health_body: Dict[str, Any] = {"status": "ok"}
        self._ids = itertools.count(1)
        self.server: TestServer

    @property
    def base_url(self) -> str:
        return str(self.server.make_url("")).rstrip("/")

    @property
    def received_messages(self) -> List[str]:
        return [
            log["message"]
            for request in self.requests
            if request["status"] < 300
            for log in request["body"]["logs"]
        ]

    async def handle_batch(self, request: web.Request) -> web.Response:
        body = await request.json()
        status = self.statuses.pop(0) if self.statuses else 201
        self.requests.append({"headers": dict(request.headers), "body": body, "status": status})

        if status >= 300:
            return web.json_response({"error": "Ingestion unavailable"}, status=status)

        ids = [f"log-{next(self._ids)}" for _ in body["logs"]]
        return web.json_response({"success": True, "data": {"count": len(ids), "ids": ids}}, status=status)

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response(self.health_body, status=self.health_status)


@pytest_asyncio.fixture
async def ingest_server() -> AsyncIterator[FakeIngestServer]:
    fake = FakeIngestServer()
    app = web.Application()
    app.router.add_post("/api/ingest/batch", fake.handle_batch)
    app.router.add_get("/api/ingest/health", fake.handle_health)

    fake.server = TestServer(app)
    await fake.server.start_server()
    try:
        yield fake
    finally:
        await fake.server.close()
