"""
Tests for presentation view builders
"""

from syncwatch.snapshot import JobSnapshot, SyncJobState
from syncwatch.views import build_job_summary, build_status_view

NOW = 1_700_000_000_000


def test_percent_rounds_half_up():
    snapshot = JobSnapshot.new("job-1", NOW, processed=1, total=8)
    assert build_status_view(snapshot, NOW)["percent"] == 13

    snapshot = JobSnapshot.new("job-1", NOW, processed=1, total=3)
    assert build_status_view(snapshot, NOW)["percent"] == 33


def test_zero_total():
    view = build_status_view(JobSnapshot.new("job-1", NOW), NOW)
    assert view["percent"] == 0
    assert view["remaining"] == 0


def test_remaining_never_negative():
    view = build_status_view(JobSnapshot.new("job-1", NOW, processed=12, total=10), NOW)
    assert view["remaining"] == 0
    assert view["percent"] == 120


def test_retry_in_seconds():
    snapshot = JobSnapshot.new("job-1", NOW, retry_at=NOW + 1_001, state=SyncJobState.PAUSED_RATE_LIMIT)
    view = build_status_view(snapshot, NOW)
    assert view["retryInSeconds"] == 2
    assert view["state"] == "PAUSED_RATE_LIMIT"

    assert build_status_view(snapshot, NOW + 5_000)["retryInSeconds"] is None


def test_throttle_settings_view():
    view = build_status_view(JobSnapshot.new("job-1", NOW), NOW)
    assert view["throttleSettings"] == {"minDelayMs": 1000, "concurrency": 100}


def test_job_summary_without_snapshot():
    assert build_job_summary("job-9", None) == {
        "jobId": "job-9",
        "state": "UNKNOWN",
        "processed": 0,
        "total": 0,
        "lastEventTimestamp": None,
    }
