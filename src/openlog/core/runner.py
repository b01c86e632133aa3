"""
Dedicated event loop thread for synchronous programs.

Hosts a LogTransport on its own asyncio loop so a stdlib logging handler
can feed it from code that never runs an event loop itself.
"""

import asyncio
import atexit
import concurrent.futures
import threading
from typing import Optional

import structlog

from ..models.log_entry import LogEntry
from .transport import LogTransport

logger = structlog.get_logger(__name__)


class TransportThread:
    """
    Runs one transport on a daemon thread.

    - start() is idempotent and returns once the transport's timer is armed;
      it re-raises any error from starting the transport
    - submit() is safe from any thread
    - stop() closes the transport (final flush) and joins the thread; it is
      registered with atexit so buffered entries are flushed on exit
    """

    def __init__(self, transport: LogTransport, shutdown_timeout: float = 30.0) -> None:
        self.transport = transport
        self.shutdown_timeout = shutdown_timeout
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()
        self._start_error: Optional[Exception] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop thread. Subsequent calls are no-ops while it runs."""
        with self._lock:
            if self.is_running:
                return

            loop = asyncio.new_event_loop()
            self._loop = loop
            self._started.clear()
            thread = threading.Thread(
                target=self._run, args=(loop,), name="openlog-transport", daemon=True
            )
            self._thread = thread
            thread.start()

        self._started.wait()
        if self._start_error is not None:
            error, self._start_error = self._start_error, None
            thread.join()
            raise error
        atexit.register(self.stop)

    def _run(self, loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            try:
                loop.run_until_complete(self.transport.start())
            except Exception as e:
                self._start_error = e
                return
            self._started.set()
            loop.run_forever()
        finally:
            self._started.set()
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def submit(self, entry: LogEntry) -> None:
        self.transport.submit_threadsafe(entry)

    def stop(self) -> None:
        """Close the transport on its loop, then stop and join the thread."""
        with self._lock:
            loop, thread = self._loop, self._thread
            if loop is None or thread is None or not thread.is_alive():
                return

        future = asyncio.run_coroutine_threadsafe(self.transport.close(), loop)
        try:
            future.result(timeout=self.shutdown_timeout)
        except concurrent.futures.TimeoutError:
            if self.transport.config.debug:
                logger.warning("Timed out closing log transport", timeout=self.shutdown_timeout)
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=self.shutdown_timeout)
            atexit.unregister(self.stop)
