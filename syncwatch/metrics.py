"""
Incremental per-job request metrics, applied to a snapshot on every event.

requests_last_60s is a cheap approximation: it only ever increments here and
is overwritten with an exact count by SyncObserver.recalculate_last_60s().
"""

from .config import ROLLING_WINDOW_MS
from .schemas.event import SyncEventRecord
from .snapshot import JobSnapshot
from .timeutil import round_half_up


def running_mean(previous_mean: float, count: int, value: float) -> int:
    """Cumulative mean after adding value as the count-th sample"""
    if count <= 0:
        return round_half_up(value)
    return round_half_up((previous_mean * (count - 1) + value) / count)


def apply_event(snapshot: JobSnapshot, record: SyncEventRecord, now_ms: int,
                window_ms: int = ROLLING_WINDOW_MS) -> JobSnapshot:
    snapshot.total_requests += 1
    snapshot.last_event_at = record.timestamp_ms
    snapshot.updated_at = now_ms
    snapshot.stall_detected = False

    if record.product_id:
        snapshot.current_product_id = record.product_id

    if record.is_rate_limited:
        snapshot.error_429_count += 1
        if record.retry_after_seconds:
            snapshot.last_retry_after_seconds = record.retry_after_seconds
            snapshot.retry_at = now_ms + int(record.retry_after_seconds * 1000)

    if record.timestamp_ms >= now_ms - window_ms:
        snapshot.requests_last_60s += 1

    if record.duration_ms > 0:
        snapshot.avg_latency_ms = running_mean(snapshot.avg_latency_ms, snapshot.total_requests, record.duration_ms)

    return snapshot
