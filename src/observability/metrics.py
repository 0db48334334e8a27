"""
Prometheus metrics for the unclaimed-property import pipeline

Counters and histograms live on a private registry; start_metrics_server()
exposes them over HTTP when a long-running import should be scraped.
"""
import os

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# RECORD METRICS
# =======================

# Rows by outcome: written, failed, discarded
records_processed_total = Counter(
    name="import_records_processed_total",
    documentation="Total number of source rows processed by the import pipeline",
    labelnames=["outcome"],
    registry=REGISTRY,
)

# Discards by reason code
records_discarded_total = Counter(
    name="import_records_discarded_total",
    documentation="Total number of rows recorded in the discard sink",
    labelnames=["reason"],
    registry=REGISTRY,
)

# =======================
# BATCH METRICS
# =======================

batches_processed_total = Counter(
    name="import_batches_processed_total",
    documentation="Total number of upsert batches processed",
    labelnames=["status"],  # status: success, failure
    registry=REGISTRY,
)

batch_write_duration_seconds = Histogram(
    name="import_batch_write_duration_seconds",
    documentation="Time spent upserting one batch in seconds",
    labelnames=["conflict_policy"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

# =======================
# RUN METRICS
# =======================

import_runs_total = Counter(
    name="import_runs_total",
    documentation="Total number of import runs by terminal status",
    labelnames=["status"],
    registry=REGISTRY,
)

import_duration_seconds = Histogram(
    name="import_duration_seconds",
    documentation="Wall-clock duration of an import run in seconds",
    buckets=[60, 300, 900, 1800, 3600, 7200, 14400],
    registry=REGISTRY,
)

download_bytes_total = Counter(
    name="import_download_bytes_total",
    documentation="Total archive bytes downloaded",
    labelnames=["mode"],  # mode: memory, disk
    registry=REGISTRY,
)

# =======================
# ERROR METRICS
# =======================

errors_total = Counter(
    name="import_errors_total",
    documentation="Total number of errors absorbed by the pipeline",
    labelnames=["error_type", "component"],
    registry=REGISTRY,
)

retries_total = Counter(
    name="import_retries_total",
    documentation="Total number of retry attempts",
    labelnames=["operation", "status"],  # status: success, failure
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def start_metrics_server(port: int | None = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Imported lazily so importing this module never binds a port
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for timing an operation into a histogram

    Usage:
        with track_duration(batch_write_duration_seconds, conflict_policy="update"):
            ...
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        metric = self.histogram.labels(**self.labels) if self.labels else self.histogram
        self.timer = metric.time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value <= 0:
        return
    counter.labels(**labels).inc(value)


def record_run_finished(status: str, duration_seconds: float) -> None:
    """Record the terminal status and duration of an import run."""
    increment_counter(import_runs_total, status=status)
    import_duration_seconds.observe(duration_seconds)
