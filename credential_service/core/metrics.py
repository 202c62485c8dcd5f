"""Prometheus metric inventory for credential-service.

Every metric the service exports is declared here; modules import the
one they own and update it at the point of action.  Prometheus scrapes
GET /metrics (see api/metrics_endpoint.py).

Label values are always drawn from small fixed sets (outcomes, steps,
operation names).  Credential ids and addresses are never used as
labels because each distinct value creates a new time series.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0, 30.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Workflow metrics
# ---------------------------------------------------------------------------

ISSUANCE_OUTCOMES = Counter(
    "credential_issuance_total",
    "Credential issuance attempts by final outcome",
    # confirmed|pending|already_issued|rejected|validation_error|
    # content_store_failure|ledger_submit_failure
    ["outcome"],
)

VERIFICATION_RESULTS = Counter(
    "credential_verifications_total",
    "Verification lookups by result",
    ["result"],  # valid|invalid|not_found|content_unavailable
)

CONTENT_STORE_OPERATIONS = Counter(
    "content_store_operations_total",
    "Content store calls by operation and result",
    ["operation", "result"],  # put|get  x  ok|not_found|unavailable|rejected
)

LEDGER_CONFIRM_DURATION = Histogram(
    "ledger_confirm_duration_seconds",
    "Time spent waiting for ledger finality",
    ["result"],  # confirmed|reverted|timeout
    # Block intervals are ~12s on Ethereum-style chains.
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0, 60.0, 120.0],
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # hit|miss
)
