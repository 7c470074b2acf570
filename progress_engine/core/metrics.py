"""Application metrics using the Prometheus client library.

Every metric the service exposes is defined here so there is one
inventory to read.  Modules import the metric they own and
increment/observe it at the point of action; GET /metrics serves the
text exposition.

Counters answer "how often" (events processed, duplicates replayed,
out-of-order events ignored, version conflicts retried).  Histograms
answer "how long" (HTTP latency, time spent inside one reconciliation
including lock waits and retries).  The single gauge tracks in-flight
HTTP requests.
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
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Reconciliation metrics
# ---------------------------------------------------------------------------

ACTIVITY_EVENTS = Counter(
    "activity_events_total",
    "Activity events handled by the reconciliation layer",
    ["operation", "outcome"],  # outcome: committed|replayed|rejected|failed
)

DUPLICATE_EVENTS = Counter(
    "duplicate_events_total",
    "Events short-circuited by an already-processed idempotency key",
    ["operation"],
)

OUT_OF_ORDER_EVENTS = Counter(
    "out_of_order_events_total",
    "Events older than the recorded state, ignored for the affected field",
    ["kind"],  # login|learning|lesson_notes
)

FUTURE_TIMESTAMPS_CLAMPED = Counter(
    "future_timestamps_clamped_total",
    "Client-supplied event times later than the server clock, pulled back to now",
    ["operation"],
)

CONCURRENCY_CONFLICTS = Counter(
    "concurrency_conflicts_total",
    "Version conflicts and lock timeouts seen while committing",
    ["operation"],
)

RECONCILE_DURATION = Histogram(
    "reconcile_duration_seconds",
    "Wall time of one reconciliation, including lock waits and retries",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0],
)

# ---------------------------------------------------------------------------
# Gamification metrics
# ---------------------------------------------------------------------------

POINTS_AWARDED = Counter(
    "points_awarded_total",
    "Points added to learner ledgers",
    ["reason"],
)

BADGES_AWARDED = Counter(
    "badges_awarded_total",
    "Badges granted",
    ["badge_id"],
)

COURSES_COMPLETED = Counter(
    "courses_completed_total",
    "Enrollments transitioned from ACTIVE to COMPLETED",
)

# ---------------------------------------------------------------------------
# Configuration and cache metrics
# ---------------------------------------------------------------------------

CONFIGURATION_WARNINGS = Counter(
    "configuration_warnings_total",
    "Course configuration problems handled by falling back to a default",
    ["reason"],  # zero_total_lessons|missing_duration|unknown_course
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Dashboard cache operations by result",
    ["operation"],  # hit|miss|invalidate
)
