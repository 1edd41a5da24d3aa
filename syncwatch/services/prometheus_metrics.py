"""
Prometheus metrics for the sync job observability engine
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from ..config import APP_VERSION

# Build info
BUILD_INFO = Gauge(
    'syncwatch_build_info',
    'Build information',
    ['version']
)

# Job runner reports
EVENTS_LOGGED_TOTAL = Counter(
    'syncwatch_events_logged_total',
    'Total number of network-call events logged',
    ['status_class']
)

RATE_LIMITED_TOTAL = Counter(
    'syncwatch_rate_limited_total',
    'Total number of 429 responses reported by job runners'
)

EVENTS_REJECTED_TOTAL = Counter(
    'syncwatch_events_rejected_total',
    'Total number of reports dropped as malformed',
    ['reason']
)

PROGRESS_UPDATES_TOTAL = Counter(
    'syncwatch_progress_updates_total',
    'Total number of coarse progress reports applied'
)

CALL_LATENCY_MS = Histogram(
    'syncwatch_call_latency_ms',
    'Reported outbound call latency in milliseconds',
    buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000]
)

# Persistence
PERSIST_WRITES_TOTAL = Counter(
    'syncwatch_persist_writes_total',
    'Total number of durable writes applied',
    ['kind']
)

PERSIST_FAILURES_TOTAL = Counter(
    'syncwatch_persist_failures_total',
    'Total number of durable writes that failed',
    ['kind']
)

PERSIST_SKIPPED_TOTAL = Counter(
    'syncwatch_persist_skipped_total',
    'Durable writes skipped because the store was not ready',
    ['kind']
)

PERSIST_DROPS_TOTAL = Counter(
    'syncwatch_persist_drops_total',
    'Durable writes dropped because the persistence queue was full'
)

PERSIST_QUEUE_DEPTH = Gauge(
    'syncwatch_persist_queue_depth',
    'Current number of writes waiting in the persistence queue'
)

PERSIST_SECONDS = Histogram(
    'syncwatch_persist_seconds',
    'Durable write latency in seconds',
    ['kind'],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0]
)

# Cache and stall detection
CACHED_JOBS = Gauge(
    'syncwatch_cached_jobs',
    'Number of job snapshots held in memory'
)

STALLS_DETECTED_TOTAL = Counter(
    'syncwatch_stalls_detected_total',
    'Total number of stalls detected (first detection per stall)'
)

STALL_SCAN_ERRORS_TOTAL = Counter(
    'syncwatch_stall_scan_errors_total',
    'Total number of stall detector ticks skipped because of an error'
)


class PrometheusMetrics:
    """Service for managing Prometheus metrics."""

    def __init__(self):
        self._setup_build_info()

    def _setup_build_info(self):
        """Set up build information gauge."""
        BUILD_INFO.labels(version=APP_VERSION).set(1)

    def increment_events_logged(self, status_code):
        """Increment logged event counter by status class."""
        if status_code is None:
            status_class = "transport_error"
        elif 200 <= status_code < 300:
            status_class = "2xx"
        elif 300 <= status_code < 400:
            status_class = "3xx"
        elif 400 <= status_code < 500:
            status_class = "4xx"
        elif 500 <= status_code < 600:
            status_class = "5xx"
        else:
            status_class = "other"
        EVENTS_LOGGED_TOTAL.labels(status_class=status_class).inc()

    def increment_rate_limited(self, count: int = 1):
        RATE_LIMITED_TOTAL.inc(count)

    def increment_events_rejected(self, reason: str, count: int = 1):
        EVENTS_REJECTED_TOTAL.labels(reason=reason).inc(count)

    def increment_progress_updates(self, count: int = 1):
        PROGRESS_UPDATES_TOTAL.inc(count)

    def observe_call_latency(self, latency_ms: float):
        """Observe reported outbound call latency."""
        CALL_LATENCY_MS.observe(latency_ms)

    def increment_persist_writes(self, kind: str, count: int = 1):
        PERSIST_WRITES_TOTAL.labels(kind=kind).inc(count)

    def increment_persist_failures(self, kind: str, count: int = 1):
        PERSIST_FAILURES_TOTAL.labels(kind=kind).inc(count)

    def increment_persist_skipped(self, kind: str, count: int = 1):
        PERSIST_SKIPPED_TOTAL.labels(kind=kind).inc(count)

    def increment_persist_drops(self, count: int = 1):
        PERSIST_DROPS_TOTAL.inc(count)

    def set_persist_queue_depth(self, depth: int):
        PERSIST_QUEUE_DEPTH.set(depth)

    def observe_persist_seconds(self, kind: str, seconds: float):
        PERSIST_SECONDS.labels(kind=kind).observe(seconds)

    def set_cached_jobs(self, count: int):
        CACHED_JOBS.set(count)

    def increment_stalls_detected(self, count: int = 1):
        STALLS_DETECTED_TOTAL.inc(count)

    def increment_stall_scan_errors(self, count: int = 1):
        STALL_SCAN_ERRORS_TOTAL.inc(count)

    def get_metrics(self) -> bytes:
        """Get Prometheus metrics in text format."""
        return generate_latest()

    def get_content_type(self) -> str:
        """Get the content type for Prometheus metrics."""
        return CONTENT_TYPE_LATEST


# Global metrics instance
prometheus_metrics = PrometheusMetrics()
