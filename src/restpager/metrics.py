"""
Prometheus metrics definitions for restpager.

Counts HTTP exchanges, pages walked by paginated calls and retries
performed by the transport. Naming: snake_case, restpager_ prefix.
"""

from prometheus_client import Counter, Histogram

# ==============================================================================
# COUNTERS
# ==============================================================================

requests_total = Counter(
    "restpager_requests_total",
    "Total HTTP requests issued",
    ["method", "status"],
    # status: HTTP status code, or "error" for transport failures
)

pages_fetched_total = Counter(
    "restpager_pages_fetched_total",
    "Pages fetched by paginated list calls",
)

retries_total = Counter(
    "restpager_retries_total",
    "Requests retried by the transport",
    ["reason"],
    # reason: rate_limited
)

# ==============================================================================
# HISTOGRAMS
# ==============================================================================

request_duration_seconds = Histogram(
    "restpager_request_duration_seconds",
    "HTTP request latency",
    ["method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
