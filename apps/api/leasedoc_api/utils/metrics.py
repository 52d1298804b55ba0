"""Prometheus metrics."""

from prometheus_client import Counter, Gauge, Histogram

# Retrieval metrics
documents_served = Counter(
    "leasedoc_documents_served_total",
    "Lease documents served",
    ["outcome", "delivery"],  # outcome: hit, miss; delivery: signed_url, bytes
)

retrieval_failures = Counter(
    "leasedoc_retrieval_failures_total",
    "Lease document retrievals that failed",
    ["code"],
)

retrieval_duration_seconds = Histogram(
    "leasedoc_retrieval_duration_seconds",
    "Lease document retrieval duration",
    ["outcome"],
)

# Render metrics
renders_total = Counter(
    "leasedoc_renders_total",
    "Lease document renders",
    ["status"],
)

render_duration_seconds = Histogram(
    "leasedoc_render_duration_seconds",
    "Lease document render duration",
)

renders_in_progress = Gauge(
    "leasedoc_renders_in_progress",
    "Renders currently holding a render lock",
)

# Storage metrics
signed_url_fallbacks = Counter(
    "leasedoc_signed_url_fallbacks_total",
    "Responses served as raw bytes because signed URL issuance failed",
)

# Index metrics
index_conflicts = Counter(
    "leasedoc_index_conflicts_total",
    "Optimistic concurrency conflicts on the artifact index",
    ["resolution"],  # served_current, superseded, stale, retried
)

# Audit metrics
audit_write_failures = Counter(
    "leasedoc_audit_write_failures_total",
    "Audit entries that could not be persisted",
    ["action"],
)
