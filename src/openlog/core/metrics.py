"""
Prometheus metrics for a log transport.

Each transport records into its own registry unless the caller passes a
shared one (for example prometheus_client.REGISTRY to expose the metrics
from an existing /metrics endpoint).
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram


class TransportMetrics:
    """
    Delivery metrics for one LogTransport.

    Keep metrics simple: in-memory counters, let Prometheus handle storage.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = "openlog") -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        self.entries_submitted_total = Counter(
            "transport_entries_submitted_total",
            "Total log entries accepted by submit",
            namespace=namespace,
            registry=self.registry,
        )

        self.entries_delivered_total = Counter(
            "transport_entries_delivered_total",
            "Total log entries acknowledged by the ingestion server",
            namespace=namespace,
            registry=self.registry,
        )

        self.delivery_attempts_total = Counter(
            "transport_delivery_attempts_total",
            "Total batch delivery attempts",
            ["outcome"],
            namespace=namespace,
            registry=self.registry,
        )

        self.batches_exhausted_total = Counter(
            "transport_batches_exhausted_total",
            "Total batches that failed every retry and were requeued",
            namespace=namespace,
            registry=self.registry,
        )

        self.entries_requeued_total = Counter(
            "transport_entries_requeued_total",
            "Total log entries put back at the front of the buffer",
            namespace=namespace,
            registry=self.registry,
        )

        self.entries_dropped_total = Counter(
            "transport_entries_dropped_total",
            "Total log entries discarded without delivery",
            ["reason"],
            namespace=namespace,
            registry=self.registry,
        )

        self.buffer_entries = Gauge(
            "transport_buffer_entries",
            "Current number of entries waiting in the live buffer",
            namespace=namespace,
            registry=self.registry,
        )

        self.request_duration = Histogram(
            "transport_request_duration_seconds",
            "Batch ingestion request duration in seconds",
            namespace=namespace,
            registry=self.registry,
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
        )

    def record_submitted(self, buffer_size: int) -> None:
        self.entries_submitted_total.inc()
        self.buffer_entries.set(buffer_size)

    def record_attempt(self, success: bool, duration_seconds: float) -> None:
        """Record one delivery attempt."""
        self.delivery_attempts_total.labels(outcome="success" if success else "failure").inc()
        self.request_duration.observe(duration_seconds)

    def record_delivered(self, entries_count: int) -> None:
        self.entries_delivered_total.inc(entries_count)

    def record_exhausted(self, entries_count: int, buffer_size: int) -> None:
        """Record a batch that was requeued after exhausting its retries."""
        self.batches_exhausted_total.inc()
        self.entries_requeued_total.inc(entries_count)
        self.buffer_entries.set(buffer_size)

    def record_dropped(self, reason: str, entries_count: int = 1) -> None:
        if entries_count <= 0:
            return
        self.entries_dropped_total.labels(reason=reason).inc(entries_count)

    def set_buffer_size(self, buffer_size: int) -> None:
        self.buffer_entries.set(buffer_size)
