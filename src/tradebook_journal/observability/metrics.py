"""Prometheus metrics for the trade journal.

Counters are module-level singletons; callers go through the helper
functions below rather than touching the collectors directly.
"""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)

# ---------------------------------------------------------------------------
# System metrics
# ---------------------------------------------------------------------------

SYSTEM_INFO = Info("journal_system", "Trade journal information")

# ---------------------------------------------------------------------------
# Upload metrics
# ---------------------------------------------------------------------------

UPLOADS_TOTAL = Counter(
    "journal_uploads_total",
    "Orderbook uploads by outcome",
    ["outcome"],
)

DUPLICATE_UPLOADS = Counter(
    "journal_duplicate_uploads_total",
    "Uploads whose file hash was already known for the user",
)

ROWS_DROPPED = Counter(
    "journal_rows_dropped_total",
    "CSV rows dropped for missing required fields",
    ["parser"],
)

UPLOAD_LATENCY = Histogram(
    "journal_upload_latency_seconds",
    "End-to-end upload processing time",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# ---------------------------------------------------------------------------
# Engine metrics
# ---------------------------------------------------------------------------

ROUND_TRIPS_MATCHED = Counter(
    "journal_round_trips_matched_total",
    "Round trips produced by the FIFO matcher",
)

RECONCILIATIONS = Counter(
    "journal_reconciliations_total",
    "Reconciliation runs by result",
    ["result"],  # applied, within_tolerance, skipped_open, no_baseline
)

DEMON_TAGS = Counter(
    "journal_demon_tags_total",
    "Demon tags assigned by the classifier",
    ["tag"],
)

# ---------------------------------------------------------------------------
# Snapshot metrics
# ---------------------------------------------------------------------------

SNAPSHOTS_FROZEN = Counter(
    "journal_snapshots_frozen_total",
    "Day snapshots written",
)

SNAPSHOT_CONFLICTS = Counter(
    "journal_snapshot_conflicts_total",
    "Partial-unique conflicts hit while freezing day snapshots",
)

STATS_CACHE_SIZE = Gauge(
    "journal_stats_cache_entries",
    "Users with a cached last-upload stats result",
)

# ---------------------------------------------------------------------------
# Daily plan metrics
# ---------------------------------------------------------------------------

PLAN_COMPARISONS = Counter(
    "journal_plan_comparisons_total",
    "Daily plan comparisons served, by badge",
    ["badge"],
)


def start_metrics_server(port: int = 9090) -> None:
    """Start Prometheus metrics HTTP server in a background thread."""
    SYSTEM_INFO.info({"version": "0.1.0"})
    start_http_server(port)


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def record_upload(outcome: str, seconds: float | None = None) -> None:
    """Record an upload attempt and, when known, its duration."""
    UPLOADS_TOTAL.labels(outcome=outcome).inc()
    if seconds is not None:
        UPLOAD_LATENCY.observe(seconds)


def record_duplicate_upload() -> None:
    DUPLICATE_UPLOADS.inc()


def record_rows_dropped(parser: str, count: int) -> None:
    """Record rows a parser skipped."""
    if count > 0:
        ROWS_DROPPED.labels(parser=parser).inc(count)


def record_round_trips(count: int) -> None:
    ROUND_TRIPS_MATCHED.inc(count)


def record_reconciliation(result: str) -> None:
    """Record the outcome of one reconciliation pass."""
    RECONCILIATIONS.labels(result=result).inc()


def record_demon(tag: str) -> None:
    DEMON_TAGS.labels(tag=tag).inc()


def record_snapshot_frozen() -> None:
    SNAPSHOTS_FROZEN.inc()


def record_snapshot_conflict() -> None:
    """Record a partial-unique conflict on snapshot insert."""
    SNAPSHOT_CONFLICTS.inc()


def update_cache_size(size: int) -> None:
    STATS_CACHE_SIZE.set(size)


def record_plan_comparison(badge: str) -> None:
    PLAN_COMPARISONS.labels(badge=badge).inc()
