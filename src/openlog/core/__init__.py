"""
Core delivery components.

- IngestClient: HTTP calls to the ingestion server
- LogTransport: buffering, flushing, retry and requeue
- TransportThread: hosts a transport for synchronous programs
- Metrics and exceptions
"""
