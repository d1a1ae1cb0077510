"""
Prometheus metrics for feed fetches, ledger writes and webhook ingestion.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from rental_sync.metrics import feed_fetch_duration, feed_fetch_total
    >>> with feed_fetch_duration.labels(property_code="BLOM", source="airbnb.fr").time():
    ...     response = requests.get(url, timeout=10)
    >>> feed_fetch_total.labels(property_code="BLOM", source="airbnb.fr", status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Feed Metrics
# =============================================================================

feed_fetch_total = Counter(
    "rental_sync_feed_fetch_total",
    "Total external calendar feed fetches (success and failure)",
    ["property_code", "source", "status"],
)
"""
Counter for feed fetches.

Labels:
    property_code: Property the feed belongs to
    source: Feed host (e.g. airbnb.fr, ical.booking.com)
    status: success or unavailable
"""

feed_fetch_duration = Histogram(
    "rental_sync_feed_fetch_duration_seconds",
    "Duration of external calendar feed fetches in seconds",
    ["property_code", "source"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, float("inf")),
)

external_blocks = Counter(
    "rental_sync_external_blocks_total",
    "Total occupancy blocks parsed from external feeds",
    ["property_code", "source"],
)

# =============================================================================
# Ledger Metrics
# =============================================================================

ledger_writes = Counter(
    "rental_sync_ledger_writes_total",
    "Reservation ledger write outcomes",
    ["property_code", "status"],
)
"""
Counter for ledger writes.

Labels:
    property_code: Property of the reservation
    status: committed, conflict, duplicate or degraded
"""

wal_pending = Gauge(
    "rental_sync_wal_pending_entries",
    "Reservations held in the write-ahead log awaiting reconciliation",
)

wal_replayed = Counter(
    "rental_sync_wal_replayed_total",
    "Write-ahead log entries processed by reconciliation",
    ["status"],
)

# =============================================================================
# Webhook Metrics
# =============================================================================

webhook_events = Counter(
    "rental_sync_webhook_events_total",
    "Inbound payment webhook outcomes",
    ["outcome"],
)
"""
Counter for inbound webhooks.

Labels:
    outcome: accepted, duplicate, pending, conflict, ignored, invalid_signature, malformed
"""
