"""Prometheus metrics collectors and helpers."""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

REGISTRY: CollectorRegistry
HTTP_REQUESTS_TOTAL: Counter
HTTP_REQUEST_DURATION: Histogram
AUTH_LOGINS_TOTAL: Counter
NONCES_ISSUED_TOTAL: Counter


def _initialise_registry() -> None:
    global REGISTRY, HTTP_REQUESTS_TOTAL, HTTP_REQUEST_DURATION
    global AUTH_LOGINS_TOTAL, NONCES_ISSUED_TOTAL

    registry = CollectorRegistry(auto_describe=True)
    ProcessCollector(registry=registry)  # expose process CPU/memory stats
    PlatformCollector(registry=registry)  # platform/runtime metadata

    HTTP_REQUESTS_TOTAL = Counter(
        "http_requests_total",
        "Count of HTTP requests received",
        labelnames=("path", "method", "status"),
        registry=registry,
    )

    HTTP_REQUEST_DURATION = Histogram(
        "http_request_duration_seconds",
        "Histogram of request latency",
        labelnames=("path", "method"),
        registry=registry,
    )

    AUTH_LOGINS_TOTAL = Counter(
        "auth_logins_total",
        "Authentication results",
        labelnames=("method", "outcome"),
        registry=registry,
    )

    NONCES_ISSUED_TOTAL = Counter(
        "wallet_nonces_issued_total",
        "Wallet login challenges issued",
        registry=registry,
    )

    REGISTRY = registry


_initialise_registry()


def render_metrics() -> bytes:
    """Return the current metrics snapshot in Prometheus format."""

    return generate_latest(REGISTRY)


def observe_request(path: str, method: str, status: int, latency_seconds: float) -> None:
    """Record HTTP request metrics in a thread-safe manner."""

    HTTP_REQUESTS_TOTAL.labels(path=path, method=method, status=str(status)).inc()
    HTTP_REQUEST_DURATION.labels(path=path, method=method).observe(latency_seconds)


def record_auth_login(method: str, outcome: str) -> None:
    """Increment authentication outcome counter."""

    AUTH_LOGINS_TOTAL.labels(method=method, outcome=outcome).inc()


def record_nonce_issued() -> None:
    NONCES_ISSUED_TOTAL.inc()


__all__ = [
    "CONTENT_TYPE_LATEST",
    "REGISTRY",
    "render_metrics",
    "observe_request",
    "record_auth_login",
    "record_nonce_issued",
]
