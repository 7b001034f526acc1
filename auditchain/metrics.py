"""
Prometheus metrics for the audit trail.

Exposes capture, dispatch and verification metrics via an HTTP /metrics
endpoint for Prometheus scraping.

Environment Variables:
    AUDITCHAIN_METRICS_ENABLED: Enable metrics server (true/false) - default: false
    AUDITCHAIN_METRICS_PORT: HTTP port for /metrics endpoint - default: 8080

Usage:
    from auditchain.metrics import start_metrics_server, track_append

    start_metrics_server(enabled=True, port=8080)
    track_append("DOCUMENT_CREATE", "committed")
"""

import logging
import threading
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Metrics registry (module-level, thread-safe)
APPENDS_TOTAL: "Counter" = None  # type: ignore
APPEND_CONFLICTS_TOTAL: "Counter" = None  # type: ignore
APPEND_DURATION: "Histogram" = None  # type: ignore
DISPATCH_FAILURES_TOTAL: "Counter" = None  # type: ignore
DISPATCH_REJECTED_TOTAL: "Counter" = None  # type: ignore
VERIFY_RESULTS_TOTAL: "Counter" = None  # type: ignore
QUERY_DURATION: "Histogram" = None  # type: ignore

_metrics_initialized = False
_metrics_lock = threading.Lock()


def init_metrics() -> None:
    """
    Initialize Prometheus metrics (call once at startup).

    Thread-safe via module-level lock; repeated calls are no-ops.
    """
    global APPENDS_TOTAL, APPEND_CONFLICTS_TOTAL, APPEND_DURATION
    global DISPATCH_FAILURES_TOTAL, DISPATCH_REJECTED_TOTAL
    global VERIFY_RESULTS_TOTAL, QUERY_DURATION
    global _metrics_initialized

    with _metrics_lock:
        if _metrics_initialized:
            return

        # Append outcomes (labels: event_type, outcome)
        APPENDS_TOTAL = Counter(
            "auditchain_appends_total",
            "Total append attempts by final outcome",
            labelnames=["event_type", "outcome"],
        )

        APPEND_CONFLICTS_TOTAL = Counter(
            "auditchain_append_conflicts_total",
            "Conditional writes rejected because the chain tail moved",
        )

        APPEND_DURATION = Histogram(
            "auditchain_append_duration_seconds",
            "Duration of append calls in seconds",
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
        )

        # Fire-and-forget dispatch failures (labels: error)
        DISPATCH_FAILURES_TOTAL = Counter(
            "auditchain_dispatch_failures_total",
            "Queued audit events that failed terminally",
            labelnames=["error"],
        )

        DISPATCH_REJECTED_TOTAL = Counter(
            "auditchain_dispatch_rejected_total",
            "Audit events rejected at submit (queue full or dispatcher stopped)",
        )

        # Verification results (labels: result)
        VERIFY_RESULTS_TOTAL = Counter(
            "auditchain_verify_results_total",
            "Chain verification results",
            labelnames=["result"],
        )

        QUERY_DURATION = Histogram(
            "auditchain_query_duration_seconds",
            "Duration of query calls in seconds",
            labelnames=["index"],
            buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
        )

        _metrics_initialized = True
        logger.info("Prometheus metrics initialized")


def start_metrics_server(enabled: bool, port: int) -> None:
    """
    Start Prometheus metrics HTTP server in background thread.

    Args:
        enabled: Whether to start metrics server (from AUDITCHAIN_METRICS_ENABLED)
        port: HTTP port for /metrics endpoint (from AUDITCHAIN_METRICS_PORT)
    """
    if not enabled:
        logger.info("Metrics server disabled (AUDITCHAIN_METRICS_ENABLED=false)")
        return

    init_metrics()

    try:
        # start_http_server is non-blocking (starts daemon thread)
        start_http_server(port, addr="0.0.0.0")
        logger.info(f"Metrics server started on http://0.0.0.0:{port}/metrics")
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")


def track_append(event_type: str, outcome: str) -> None:
    if APPENDS_TOTAL is not None:
        APPENDS_TOTAL.labels(event_type=event_type, outcome=outcome).inc()


def track_conflict() -> None:
    if APPEND_CONFLICTS_TOTAL is not None:
        APPEND_CONFLICTS_TOTAL.inc()


@contextmanager
def track_append_duration() -> Generator[None, None, None]:
    if APPEND_DURATION is None:
        yield
        return

    with APPEND_DURATION.time():
        yield


@contextmanager
def track_query_duration(index: str) -> Generator[None, None, None]:
    if QUERY_DURATION is None:
        yield
        return

    with QUERY_DURATION.labels(index=index).time():
        yield


def track_dispatch_failure(error: str) -> None:
    if DISPATCH_FAILURES_TOTAL is not None:
        DISPATCH_FAILURES_TOTAL.labels(error=error).inc()


def track_dispatch_rejected() -> None:
    if DISPATCH_REJECTED_TOTAL is not None:
        DISPATCH_REJECTED_TOTAL.inc()


def track_verification(result: str) -> None:
    if VERIFY_RESULTS_TOTAL is not None:
        VERIFY_RESULTS_TOTAL.labels(result=result).inc()
