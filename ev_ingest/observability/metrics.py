"""
Prometheus metrics for the ingestion pipeline

Counters and histograms for validation issues, transform branches, batch
writes and workflow verdicts. All metrics live in a private registry so
importing this module never touches the global default registry.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# VALIDATION METRICS
# =======================

validation_issues_total = Counter(
    name="ingest_validation_issues_total",
    documentation="Total number of validation errors and warnings",
    labelnames=["code", "severity"],  # severity: error, warning
    registry=REGISTRY,
)

validation_runs_total = Counter(
    name="ingest_validation_runs_total",
    documentation="Total number of validation runs",
    labelnames=["status"],  # status: valid, invalid
    registry=REGISTRY,
)

# =======================
# TRANSFORM METRICS
# =======================

rows_skipped_total = Counter(
    name="ingest_rows_skipped_total",
    documentation="Rows skipped because they failed parsing",
    labelnames=["branch"],
    registry=REGISTRY,
)

branch_results_total = Counter(
    name="ingest_branch_results_total",
    documentation="Transform branch outcomes",
    labelnames=["branch", "status"],  # status: success, failure
    registry=REGISTRY,
)

branch_duration_seconds = Histogram(
    name="ingest_branch_duration_seconds",
    documentation="Time spent in a transform branch in seconds",
    labelnames=["branch"],
    buckets=[0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 300.0, 900.0],
    registry=REGISTRY,
)

# =======================
# STORE WRITE METRICS
# =======================

items_written_total = Counter(
    name="ingest_items_written_total",
    documentation="Items accepted by the keyed store",
    labelnames=["destination"],
    registry=REGISTRY,
)

items_failed_total = Counter(
    name="ingest_items_failed_total",
    documentation="Items that exhausted their write retries",
    labelnames=["destination"],
    registry=REGISTRY,
)

write_retries_total = Counter(
    name="ingest_write_retries_total",
    documentation="Bulk put retry attempts",
    labelnames=["destination", "reason"],  # reason: unprocessed, transport
    registry=REGISTRY,
)

write_duration_seconds = Histogram(
    name="ingest_write_duration_seconds",
    documentation="Time spent in one batch write call in seconds",
    labelnames=["destination"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 120.0],
    registry=REGISTRY,
)

# =======================
# WORKFLOW METRICS
# =======================

workflow_verdicts_total = Counter(
    name="ingest_workflow_verdicts_total",
    documentation="Workflow executions by terminal state",
    labelnames=["state"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """Generate Prometheus metrics in text format"""
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: the HTTP server is only needed when the endpoint is enabled
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value:
        counter.labels(**labels).inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    histogram.labels(**labels).observe(value)


# =======================
# PIPELINE HELPERS
# =======================

def record_validation(is_valid: bool, error_codes: list[str], warning_codes: list[str]) -> None:
    """
    Record one validation run and its issues.

    Args:
        is_valid: Overall validity
        error_codes: Codes of all errors in the report
        warning_codes: Codes of all warnings in the report
    """
    increment_counter(validation_runs_total, 1, status="valid" if is_valid else "invalid")
    for code in error_codes:
        increment_counter(validation_issues_total, 1, code=code, severity="error")
    for code in warning_codes:
        increment_counter(validation_issues_total, 1, code=code, severity="warning")


def record_write(destination: str, success_count: int, failed_count: int, duration_seconds: float) -> None:
    increment_counter(items_written_total, success_count, destination=destination)
    increment_counter(items_failed_total, failed_count, destination=destination)
    observe_histogram(write_duration_seconds, duration_seconds, destination=destination)


def record_retry(destination: str, reason: str) -> None:
    increment_counter(write_retries_total, 1, destination=destination, reason=reason)


def record_branch(branch: str, success: bool, skipped_rows: int, duration_seconds: float) -> None:
    """Record the outcome of one transform branch."""
    increment_counter(branch_results_total, 1, branch=branch, status="success" if success else "failure")
    increment_counter(rows_skipped_total, skipped_rows, branch=branch)
    observe_histogram(branch_duration_seconds, duration_seconds, branch=branch)


def record_verdict(state: str) -> None:
    increment_counter(workflow_verdicts_total, 1, state=state)
