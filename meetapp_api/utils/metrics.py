"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

# Generation metrics
generation_runs = Counter(
    "meetapp_generation_runs_total",
    "Total meeting application generation runs",
    ["outcome"],
)

generation_duration = Histogram(
    "meetapp_generation_duration_seconds",
    "Meeting application generation duration",
)

# PDF metrics
merge_fallbacks = Counter(
    "meetapp_merge_fallbacks_total",
    "Merges retried with the fallback engine",
    ["engine"],
)

# Registry metrics
registry_requests = Counter(
    "meetapp_registry_requests_total",
    "Message body requests sent to the registry service",
    ["result"],
)

registry_callbacks = Counter(
    "meetapp_registry_callbacks_total",
    "Callbacks received from the registry service",
    ["status"],
)
