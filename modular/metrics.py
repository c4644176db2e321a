"""
Prometheus metrics for the modular engine.

Exposes engine metrics via HTTP /metrics endpoint for Prometheus scraping.
All helpers are no-ops until init_metrics() has been called.

Environment Variables:
    METRICS_ENABLED: Enable metrics server (true/false) - default: false
    METRICS_PORT: HTTP port for /metrics endpoint - default: 8080

Usage:
    from modular.metrics import start_metrics_server, track_dispatch_duration

    start_metrics_server(enabled=True, port=8080)

    with track_dispatch_duration():
        store.dispatch(event)
"""

import logging
import os
import threading
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Metrics registry (module-level, thread-safe)
ENGINE_COMPILES_TOTAL: "Counter" = None  # type: ignore
DISPATCH_DURATION: "Histogram" = None  # type: ignore
REGISTERED_MODULES: "Gauge" = None  # type: ignore
CONTRACT_VIOLATIONS_TOTAL: "Counter" = None  # type: ignore

_metrics_initialized = False
_metrics_lock = threading.Lock()


def init_metrics() -> None:
    """
    Initialize Prometheus metrics (call once at startup).

    Thread-safe via module-level lock; later calls are no-ops.
    """
    global ENGINE_COMPILES_TOTAL, DISPATCH_DURATION, REGISTERED_MODULES
    global CONTRACT_VIOLATIONS_TOTAL, _metrics_initialized

    with _metrics_lock:
        if _metrics_initialized:
            return

        ENGINE_COMPILES_TOTAL = Counter(
            "modular_engine_compiles_total",
            "Total number of module graph compilations",
        )

        DISPATCH_DURATION = Histogram(
            "modular_dispatch_duration_seconds",
            "Duration of composed transitions in seconds",
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
        )

        REGISTERED_MODULES = Gauge(
            "modular_registered_modules",
            "Number of modules in the most recently derived registry",
        )

        # labels: error (InvalidModule, CircularDependency, MissingExternalDependency)
        CONTRACT_VIOLATIONS_TOTAL = Counter(
            "modular_contract_violations_total",
            "Total number of module contract violations detected",
            labelnames=["error"],
        )

        _metrics_initialized = True
        logger.info("Prometheus metrics initialized")


def metrics_settings_from_env() -> "tuple[bool, int]":
    """Read METRICS_ENABLED and METRICS_PORT."""
    enabled = os.getenv("METRICS_ENABLED", "false").strip().lower() in ("1", "true", "yes")
    port = int(os.getenv("METRICS_PORT", "8080"))
    return enabled, port


def start_metrics_server(enabled: bool, port: int) -> None:
    """
    Start Prometheus metrics HTTP server in background thread.

    Args:
        enabled: Whether to start metrics server (from METRICS_ENABLED env var)
        port: HTTP port for /metrics endpoint (from METRICS_PORT env var)
    """
    if not enabled:
        logger.info("Metrics server disabled (METRICS_ENABLED=false)")
        return

    init_metrics()

    try:
        start_http_server(port, addr="0.0.0.0")
        logger.info(f"Metrics server started on http://0.0.0.0:{port}/metrics")
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")


def track_compile() -> None:
    if ENGINE_COMPILES_TOTAL is not None:
        ENGINE_COMPILES_TOTAL.inc()


@contextmanager
def track_dispatch_duration() -> Generator[None, None, None]:
    """
    Context manager for timing a composed transition.

    Usage:
        with track_dispatch_duration():
            next_state = reducer(state, event)
    """
    if DISPATCH_DURATION is None:
        yield
        return

    with DISPATCH_DURATION.time():
        yield


def set_registered_modules(count: int) -> None:
    if REGISTERED_MODULES is not None:
        REGISTERED_MODULES.set(count)


def track_contract_violation(error: str) -> None:
    """
    Count a contract violation.

    Args:
        error: Exception class name (e.g., "CircularDependency")
    """
    if CONTRACT_VIOLATIONS_TOTAL is not None:
        CONTRACT_VIOLATIONS_TOTAL.labels(error=error).inc()
