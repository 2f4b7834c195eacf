"""Prometheus metric inventory.

Every metric the service exposes is declared here; the modules that own
the behaviour import and increment them.  Scraped from GET /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, route template, and status code",
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
# Progress engine
# ---------------------------------------------------------------------------

COMPLETION_EVENTS = Counter(
    "completion_events_total",
    "Completion events submitted, by outcome",
    ["outcome"],  # recorded|duplicate|rejected
)

ACHIEVEMENTS_UNLOCKED = Counter(
    "achievements_unlocked_total",
    "Achievements unlocked, by achievement type",
    ["type"],
)

LEVEL_UPS = Counter(
    "level_ups_total",
    "Level upgrades, by the level reached",
    ["level"],
)

XP_AWARDED = Counter(
    "xp_awarded_total",
    "Experience points credited to users (events and achievements)",
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache operations by result",
    ["operation"],  # hit|miss|invalidate
)

# ---------------------------------------------------------------------------
# AI tutor
# ---------------------------------------------------------------------------

TUTOR_REQUESTS = Counter(
    "tutor_requests_total",
    "Messages forwarded to the tutor model, by outcome",
    ["outcome"],  # ok|error
)

TUTOR_ACTIVE_SESSIONS = Gauge(
    "tutor_active_sessions",
    "Tutor chat sessions currently held in the session store",
)
