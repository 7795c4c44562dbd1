# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Prometheus metrics, single source of truth for all metric objects.
Imported by services and middleware. Never instantiated in controllers.
"""
from prometheus_client import Counter, Gauge, Histogram

# ── HTTP Metrics (used by middleware) ──
REQUEST_COUNT = Counter(
    "patrol_requests_total",
    "Total HTTP requests to the patrol scheduling service",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "patrol_request_duration_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
)
HTTP_ERRORS = Counter(
    "patrol_http_errors_total",
    "Total HTTP error responses",
    ["method", "endpoint", "status"],
)

# ── Business Metrics (updated by service layer only) ──
PATROL_GROUPS_CREATED = Counter(
    "patrol_groups_created_total",
    "Total patrol groups created",
)
PATROL_GROUPS_ACTIVE = Gauge(
    "patrol_groups_active",
    "Patrol groups currently scheduled or in progress",
)
SCHEDULE_CONFLICTS = Counter(
    "patrol_schedule_conflicts_total",
    "Staff double-booking attempts detected",
    ["source"],
)
STATUS_SYNCS = Counter(
    "patrol_incident_status_syncs_total",
    "Incident status recomputations triggered by patrol group events",
    ["event", "status"],
)
CONSISTENCY_FAILURES = Counter(
    "patrol_consistency_failures_total",
    "Units of work rolled back because the status sync step failed",
)
TX_RETRIES = Counter(
    "patrol_transaction_retries_total",
    "Units of work retried after a serialization failure",
)
LOCK_WAIT = Histogram(
    "patrol_lock_wait_seconds",
    "Time spent acquiring scheduling locks",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5],
)
