"""Prometheus metrics for the event pipeline.

All collectors live on the default registry and are exposed by the
``/metrics`` route of the status API.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

notifications_total = Counter(
    "k8stream_notifications_total",
    "Notifications received from the watch streams",
    ["kind", "op"],
)

notifications_dropped_total = Counter(
    "k8stream_notifications_dropped_total",
    "Notifications skipped before enrichment",
    ["reason"],
)

notification_errors_total = Counter(
    "k8stream_notification_errors_total",
    "Notifications whose processing was aborted by an error",
    ["kind"],
)

events_enriched_total = Counter(
    "k8stream_events_enriched_total",
    "Enriched events pushed to the batcher",
    ["kind"],
)

lookup_failures_total = Counter(
    "k8stream_lookup_failures_total",
    "Failed orchestration API lookups",
    ["target"],
)

batches_flushed_total = Counter(
    "k8stream_batches_flushed_total",
    "Batches handed to the sink",
    ["trigger"],
)

events_delivered_total = Counter(
    "k8stream_events_delivered_total",
    "Events accepted by the sink",
)

sink_failures_total = Counter(
    "k8stream_sink_failures_total",
    "Batches dropped because the sink failed",
)

pending_events = Gauge(
    "k8stream_pending_events",
    "Events waiting in the current batch",
)
