"""
Tests for per-event snapshot metrics
"""

from syncwatch.metrics import apply_event, running_mean
from syncwatch.schemas import SyncEventRecord
from syncwatch.snapshot import JobSnapshot
from syncwatch.timeutil import iso_from_ms

NOW = 1_700_000_000_000


def _record(ts=NOW, **fields):
    return SyncEventRecord(job_id="job-1", timestamp_ms=ts, timestamp=iso_from_ms(ts), **fields)


def test_running_mean_matches_arithmetic_mean():
    durations = [100, 200, 300, 400]
    mean = 0
    for i, d in enumerate(durations, start=1):
        mean = running_mean(mean, i, d)
        assert mean == round(sum(durations[:i]) / i)


def test_running_mean_first_sample():
    assert running_mean(0, 1, 250) == 250
    assert running_mean(0, 0, 250) == 250


def test_counts_requests_and_latency():
    snapshot = JobSnapshot.new("job-1", NOW)
    for _ in range(5):
        apply_event(snapshot, _record(status_code=200, duration_ms=100), NOW)
    assert snapshot.total_requests == 5
    assert snapshot.requests_last_60s == 5
    assert snapshot.avg_latency_ms == 100
    assert snapshot.error_429_count == 0


def test_zero_duration_leaves_average_alone():
    snapshot = JobSnapshot.new("job-1", NOW)
    apply_event(snapshot, _record(status_code=200, duration_ms=100), NOW)
    apply_event(snapshot, _record(status_code=None, duration_ms=0), NOW)
    assert snapshot.avg_latency_ms == 100
    assert snapshot.total_requests == 2


def test_rate_limit_sets_retry_at():
    snapshot = JobSnapshot.new("job-1", NOW)
    apply_event(snapshot, _record(status_code=429, retry_after_seconds=30), NOW)
    assert snapshot.error_429_count == 1
    assert snapshot.last_retry_after_seconds == 30
    assert snapshot.retry_at == NOW + 30_000


def test_rate_limit_without_hint_keeps_retry_at():
    snapshot = JobSnapshot.new("job-1", NOW, retry_at=NOW + 5_000)
    apply_event(snapshot, _record(status_code=429), NOW)
    assert snapshot.error_429_count == 1
    assert snapshot.retry_at == NOW + 5_000


def test_event_clears_stall_and_tracks_product():
    snapshot = JobSnapshot.new("job-1", NOW - 60_000, stall_detected=True)
    apply_event(snapshot, _record(status_code=200, product_id="p9"), NOW)
    assert snapshot.stall_detected is False
    assert snapshot.last_event_at == NOW
    assert snapshot.updated_at == NOW
    assert snapshot.current_product_id == "p9"


def test_event_outside_window_not_counted_in_last_60s():
    snapshot = JobSnapshot.new("job-1", NOW)
    apply_event(snapshot, _record(ts=NOW - 61_000, status_code=200), NOW)
    assert snapshot.total_requests == 1
    assert snapshot.requests_last_60s == 0
