"""Prometheus metrics helpers for the family/student importer."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Gauge, Histogram

_importer_enabled_gauge = Gauge(
    "importer_families_enabled",
    "Whether the family/student importer is enabled (1) or disabled (0).",
)
_rows_processed_counter = Counter(
    "importer_families_rows_total",
    "Rows handled by the family/student importer by phase and outcome.",
    ["phase", "outcome"],
)
_duplicate_candidates_counter = Counter(
    "importer_families_duplicate_candidates_total",
    "Duplicate student candidates surfaced during validation by source.",
    ["source"],
)
_batch_duration = Histogram(
    "importer_families_batch_duration_seconds",
    "Duration of family/student batch processing in seconds.",
    ["phase"],
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120, 300),
)
_lookup_failures_counter = Counter(
    "importer_families_lookup_failures_total",
    "Batches aborted because grade/class lookups could not be loaded.",
)


def record_importer_status(enabled: bool) -> None:
    """Set the importer enabled gauge."""

    _importer_enabled_gauge.set(1 if enabled else 0)


def record_row_outcome(
    phase: Literal["validate", "import"],
    outcome: Literal["valid", "invalid", "success", "partial", "failure"],
) -> None:
    """Increment the per-row outcome counter."""

    _rows_processed_counter.labels(phase=phase, outcome=outcome).inc()


def record_duplicate_candidates(source: Literal["existing", "batch"], count: int) -> None:
    if count <= 0:
        return
    _duplicate_candidates_counter.labels(source=source).inc(count)


def record_batch_duration(phase: Literal["validate", "import"], duration_seconds: float) -> None:
    _batch_duration.labels(phase=phase).observe(duration_seconds)


def record_lookup_failure() -> None:
    _lookup_failures_counter.inc()
