"""Prometheus metrics for the SmartCompare engine."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("smartcompare", "SmartCompare application info")
app_info.info({"version": "0.1.0", "name": "smartcompare"})

# Reconciliation metrics
reconciliation_runs_total = Counter(
    "reconciliation_runs_total",
    "Total number of reconciliation runs",
)

reconciled_listings_total = Counter(
    "reconciled_listings_total",
    "Listings produced by reconciliation, by outcome",
    ["outcome"],
)

candidate_deals_received = Histogram(
    "candidate_deals_received",
    "Number of candidate deals handed to a reconciliation run",
    buckets=[0, 1, 2, 3, 5, 8, 13, 21],
)

# Price history metrics
history_points_total = Counter(
    "history_points_total",
    "Price points offered to the history store",
    ["status"],
)

history_series_seeded_total = Counter(
    "history_series_seeded_total",
    "Price series synthesized by the seed generator",
)

history_load_errors_total = Counter(
    "history_load_errors_total",
    "Times the persisted history could not be parsed",
)

# AI collaborator metrics
ai_calls_total = Counter(
    "ai_calls_total",
    "Total number of AI collaborator calls",
    ["operation", "status"],
)

ai_call_duration_seconds = Histogram(
    "ai_call_duration_seconds",
    "Time spent waiting on AI collaborators",
    ["operation"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)


def record_reconciliation(
    deal_count: int,
    matched: int,
    repaired: int,
    failed: int,
    discovered: int,
):
    """Record the outcome of one reconciliation run."""
    reconciliation_runs_total.inc()
    candidate_deals_received.observe(deal_count)
    reconciled_listings_total.labels(outcome="matched").inc(matched)
    reconciled_listings_total.labels(outcome="repaired").inc(repaired)
    reconciled_listings_total.labels(outcome="failed").inc(failed)
    reconciled_listings_total.labels(outcome="discovered").inc(discovered)


def record_history_point(stored: bool):
    """Record a price point being stored or skipped by the dedupe window."""
    status = "stored" if stored else "skipped"
    history_points_total.labels(status=status).inc()


def record_ai_call(operation: str, success: bool, duration: float):
    """Record an AI collaborator call."""
    status = "success" if success else "error"
    ai_calls_total.labels(operation=operation, status=status).inc()
    ai_call_duration_seconds.labels(operation=operation).observe(duration)
