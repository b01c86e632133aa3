"""
Buffered log transport with timed and size-triggered flushing.

Features:
- Non-blocking submit that is safe inside a logging call site
- Flush on buffer size, on a periodic timer, or explicitly
- Retry with exponential backoff (2s, 4s, 8s, ...) per batch
- Failed batches requeued ahead of newer entries
- Ordered shutdown: cancel timer, drain in-flight flushes, final flush
"""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import structlog

from ..config import TransportConfig
from ..models.log_entry import IngestResponse, LogEntry
from .client import IngestClient, check_serializable
from .exceptions import BatchExhaustion, DeliveryFailure, TransportClosedError
from .metrics import TransportMetrics

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]
ErrorCallback = Callable[[BatchExhaustion], None]


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    return float(2 ** attempt)


class TransportState(str, Enum):
    """Observable transport states."""

    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    CLOSED = "closed"


class LogTransport:
    """
    At-least-once delivery of log entries to the ingestion server.

    Runs on a single asyncio event loop. The buffer is swapped for an empty
    list at the start of each flush, so entries submitted while a batch is
    in flight never join that batch. Flushes are serialized behind one
    in-flight guard; at most one background flush waits behind it.

    Delivery failures never reach the producer. Exhausted batches go back
    to the front of the buffer and are reported through ``on_error``, the
    metrics and (in debug mode) the log.
    """

    def __init__(
        self,
        config: TransportConfig,
        client: Optional[IngestClient] = None,
        metrics: Optional[TransportMetrics] = None,
        on_error: Optional[ErrorCallback] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.config = config
        self.metrics = metrics or TransportMetrics()
        self._client = client or IngestClient(config)
        self._owns_client = client is None
        self._on_error = on_error
        self._sleep = sleep

        self._buffer: List[LogEntry] = []
        self._flush_lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer_task: Optional["asyncio.Task[None]"] = None
        self._queued_flush: Optional["asyncio.Task[None]"] = None
        self._background: Set["asyncio.Task[None]"] = set()
        self._flushing = False
        self._closed = False

        # Stats
        self._sent_count = 0
        self._failed_attempts = 0
        self._exhausted_batches = 0
        self._dropped_count = 0
        self._last_error: Optional[str] = None

        self._log = logger.bind(endpoint=config.endpoint_url)
        self._diag(
            "debug",
            "Log transport initialized",
            batch_size=config.batch_size,
            flush_interval_ms=config.flush_interval_ms,
            retries=config.retries,
        )

    async def __aenter__(self) -> "LogTransport":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def state(self) -> TransportState:
        if self._closed:
            return TransportState.CLOSED
        if self._flushing:
            return TransportState.FLUSHING
        if self._buffer:
            return TransportState.ACCUMULATING
        return TransportState.IDLE

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of entries in the live buffer."""
        return len(self._buffer)

    async def start(self) -> None:
        """
        Bind to the running loop and arm the flush timer now.

        Optional: the first submit made on a running loop does the same.
        """
        if self._closed:
            raise TransportClosedError()

        loop = asyncio.get_running_loop()
        self._loop = loop
        self._ensure_timer(loop)
        if len(self._buffer) >= self.config.batch_size:
            self._schedule_flush(loop)

    def submit(self, entry: LogEntry) -> None:
        """
        Enqueue an entry for delivery. Never blocks and never raises.

        Applies the configured service/environment defaults and stamps the
        submission time on entries without a timestamp.
        """
        try:
            if self._closed:
                self._dropped_count += 1
                self.metrics.record_dropped("closed")
                self._diag("debug", "Entry submitted after close, discarding")
                return

            self._buffer.append(
                entry.with_defaults(
                    service=self.config.service,
                    environment=self.config.environment,
                )
            )
            self._shed_overflow()
            self.metrics.record_submitted(len(self._buffer))

            loop = self._running_loop()
            if loop is None:
                # No loop yet: entries wait for start() or the next in-loop submit.
                return

            self._ensure_timer(loop)
            if len(self._buffer) >= self.config.batch_size:
                self._schedule_flush(loop)
        except Exception as e:
            self._log.error("Log submit failed", error=str(e), error_type=type(e).__name__, exc_info=True)

    def submit_threadsafe(self, entry: LogEntry) -> None:
        """
        Submit from any thread.

        Off-loop callers hand the entry to the transport's loop; on-loop
        callers, and callers before any loop is bound, submit directly.
        """
        loop = self._loop
        if loop is None or loop.is_closed() or not loop.is_running():
            self.submit(entry)
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self.submit(entry)
            return

        try:
            loop.call_soon_threadsafe(self.submit, entry)
        except RuntimeError:
            # loop closed between the check and the call
            self.submit(entry)

    async def flush(self) -> bool:
        """
        Capture the buffer and deliver it.

        Returns:
            True if the buffer was empty or the batch was delivered, False
            if every attempt failed and the batch was requeued.
        """
        async with self._flush_lock:
            return await self._flush_locked()

    async def close(self) -> None:
        """
        Stop the timer, wait for in-flight flushes and flush once more.

        Terminal and idempotent. Entries still undelivered after the final
        flush are dropped. An unexpected error in the final flush is logged,
        not raised, and an owned client is stopped regardless.
        """
        if self._closed:
            return
        self._closed = True
        self._diag("debug", "Closing log transport", pending=len(self._buffer))

        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None

        try:
            if self._background:
                await asyncio.gather(*self._background, return_exceptions=True)

            try:
                await self.flush()
            except Exception as e:
                self._log.error("Final flush failed", error=str(e), error_type=type(e).__name__, exc_info=True)

            if self._buffer:
                dropped = len(self._buffer)
                self._buffer = []
                self._dropped_count += dropped
                self.metrics.record_dropped("closed", dropped)
                self.metrics.set_buffer_size(0)
                self._diag("error", "Transport closed with undelivered entries", dropped=dropped)
        finally:
            if self._owns_client:
                await self._client.stop()

        self._diag("debug", "Log transport closed", sent=self._sent_count)

    async def check_health(self) -> bool:
        """Probe the ingestion server's health route."""
        return await self._client.check_health()

    def get_stats(self) -> Dict[str, Any]:
        """Get delivery statistics."""
        return {
            "state": self.state.value,
            "buffer_size": len(self._buffer),
            "sent_count": self._sent_count,
            "failed_attempts": self._failed_attempts,
            "exhausted_batches": self._exhausted_batches,
            "dropped_count": self._dropped_count,
            "last_error": self._last_error,
        }

    def _running_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        self._loop = loop
        return loop

    def _ensure_timer(self, loop: asyncio.AbstractEventLoop) -> None:
        """Arm the periodic flush timer unless one is already live on this loop."""
        if self._closed:
            return

        task = self._timer_task
        if task is not None and not task.done() and task.get_loop() is loop:
            return

        self._timer_task = loop.create_task(self._run_timer(), name="openlog-flush-timer")

    async def _run_timer(self) -> None:
        interval = self.config.flush_interval_seconds
        while not self._closed:
            await asyncio.sleep(interval)
            if self._buffer and not self._closed:
                self._schedule_flush(asyncio.get_running_loop())

    def _schedule_flush(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start a background flush unless one is already waiting to run."""
        if self._queued_flush is not None:
            return

        task = loop.create_task(self._background_flush(), name="openlog-flush")
        self._queued_flush = task
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _background_flush(self) -> None:
        current = asyncio.current_task()
        try:
            async with self._flush_lock:
                if self._queued_flush is current:
                    self._queued_flush = None
                await self._flush_locked()
        except Exception as e:
            self._log.error("Background flush failed", error=str(e), error_type=type(e).__name__, exc_info=True)
        finally:
            if self._queued_flush is current:
                self._queued_flush = None

    async def _flush_locked(self) -> bool:
        if not self._buffer:
            return True

        batch = self._buffer
        self._buffer = []
        self.metrics.set_buffer_size(0)

        batch = self._drop_unserializable(batch)
        if not batch:
            return True

        self._flushing = True

        try:
            response = await self._deliver(batch)
        except BatchExhaustion as exhaustion:
            self._requeue(batch)
            self.metrics.record_exhausted(len(batch), len(self._buffer))
            self._report_exhaustion(exhaustion)
            return False
        except BaseException:
            # Cancelled or unexpected client error: keep the entries.
            self._requeue(batch)
            self.metrics.set_buffer_size(len(self._buffer))
            raise
        finally:
            self._flushing = False

        self._sent_count += len(batch)
        self.metrics.record_delivered(len(batch))
        self._diag(
            "info",
            "Sent logs successfully",
            entries=len(batch),
            accepted=response.accepted if response is not None else None,
        )
        return True

    async def _deliver(self, batch: List[LogEntry]) -> Optional[IngestResponse]:
        """Try the batch up to ``retries`` times with exponential backoff."""
        retries = self.config.retries
        last_error: Optional[DeliveryFailure] = None

        for attempt in range(1, retries + 1):
            started = time.monotonic()
            try:
                response = await self._client.send_batch(batch)
            except DeliveryFailure as e:
                last_error = e
                self._failed_attempts += 1
                self._last_error = str(e)
                self.metrics.record_attempt(False, time.monotonic() - started)
                self._diag(
                    "warning",
                    "Delivery attempt failed",
                    attempt=attempt,
                    retries=retries,
                    entries=len(batch),
                    status_code=e.status_code,
                    error=str(e),
                )

                if attempt < retries:
                    await self._sleep(backoff_delay(attempt))
                continue

            self.metrics.record_attempt(True, time.monotonic() - started)
            return response

        raise BatchExhaustion(entries=len(batch), attempts=retries, last_error=last_error)

    def _drop_unserializable(self, batch: List[LogEntry]) -> List[LogEntry]:
        """Remove entries that can never be encoded, so they cannot block the rest."""
        kept: List[LogEntry] = []
        for entry in batch:
            try:
                check_serializable(entry)
            except (TypeError, ValueError) as e:
                self._dropped_count += 1
                self.metrics.record_dropped("unserializable")
                self._diag("error", "Dropped unserializable log entry", message=entry.message, error=str(e))
                continue
            kept.append(entry)
        return kept

    def _requeue(self, batch: List[LogEntry]) -> None:
        """Put an undelivered batch back ahead of anything submitted since."""
        self._buffer[:0] = batch
        self._shed_overflow()

    def _shed_overflow(self) -> None:
        limit = self.config.max_buffer_size
        if limit is None or len(self._buffer) <= limit:
            return

        overflow = len(self._buffer) - limit
        del self._buffer[:overflow]
        self._dropped_count += overflow
        self.metrics.record_dropped("overflow", overflow)
        self._diag("warning", "Buffer limit reached, dropped oldest entries", dropped=overflow, limit=limit)

    def _report_exhaustion(self, exhaustion: BatchExhaustion) -> None:
        self._exhausted_batches += 1
        self._diag(
            "error",
            "Batch delivery exhausted retries, requeued",
            entries=exhaustion.entries,
            attempts=exhaustion.attempts,
            buffer_size=len(self._buffer),
            error=exhaustion.details.get("last_error"),
        )

        if self._on_error is None:
            return
        try:
            self._on_error(exhaustion)
        except Exception as e:
            self._log.warning("on_error callback raised", error=str(e))

    def _diag(self, level: str, event: str, **fields: Any) -> None:
        """Delivery diagnostics, emitted only in debug mode."""
        if self.config.debug:
            getattr(self._log, level)(event, **fields)
