"""
Tests for event and progress input models
"""

import pytest
from pydantic import ValidationError

from syncwatch.schemas import JobProgress, SyncEventIn, SyncEventRecord
from syncwatch.snapshot import SyncJobState


def _record(event: SyncEventIn, ts: int = 1_000) -> SyncEventRecord:
    return SyncEventRecord.from_input("job-1", event, ts, "1970-01-01T00:00:01Z")


class TestSyncEventIn:
    def test_accepts_camel_and_snake_case(self):
        camel = SyncEventIn.model_validate({"productId": "p1", "statusCode": 200, "durationMs": 42})
        snake = SyncEventIn.model_validate({"product_id": "p1", "status_code": 200, "duration_ms": 42})
        assert camel == snake

    def test_unknown_keys_ignored(self):
        event = SyncEventIn.model_validate({"statusCode": 200, "somethingElse": 1})
        assert event.status_code == 200

    def test_numeric_ids_coerced_to_string(self):
        event = SyncEventIn.model_validate({"productId": 12345, "listingId": 987})
        assert event.product_id == "12345"
        assert event.listing_id == "987"

    def test_fractional_duration_rounded(self):
        assert SyncEventIn.model_validate({"durationMs": 120.6}).duration_ms == 121

    def test_long_text_fields_truncated(self):
        event = SyncEventIn.model_validate({
            "errorMessage": "e" * 600,
            "payloadSummary": "p" * 300,
            "responseSnippet": "r" * 2000,
        })
        assert len(event.error_message) == 500
        assert len(event.payload_summary) == 200
        assert len(event.response_snippet) == 1000

    def test_non_string_error_message_stringified(self):
        event = SyncEventIn.model_validate({"errorMessage": ValueError("boom")})
        assert event.error_message == "boom"

    def test_zero_status_and_retry_after_mean_absent(self):
        event = SyncEventIn.model_validate({"statusCode": 0, "retryAfterSeconds": 0})
        assert event.status_code is None
        assert event.retry_after_seconds is None

    def test_bad_status_code_rejected(self):
        with pytest.raises(ValidationError):
            SyncEventIn.model_validate({"statusCode": "teapot"})


class TestSyncEventRecord:
    def test_defaults(self):
        record = _record(SyncEventIn())
        assert record.operation == "unknown"
        assert record.http_method == "GET"
        assert record.endpoint_path == ""
        assert record.duration_ms == 0
        assert record.workspace_id == 1
        assert record.status_code is None

    def test_method_uppercased(self):
        assert _record(SyncEventIn(http_method="patch")).http_method == "PATCH"

    def test_rate_limited(self):
        assert _record(SyncEventIn(status_code=429)).is_rate_limited
        assert not _record(SyncEventIn(status_code=200)).is_rate_limited

    def test_frozen(self):
        record = _record(SyncEventIn(status_code=200))
        with pytest.raises(ValidationError):
            record.status_code = 500

    def test_api_shape_is_camel_case(self):
        data = _record(SyncEventIn(status_code=200, product_id="p1")).to_api()
        assert data["jobId"] == "job-1"
        assert data["timestampMs"] == 1_000
        assert data["statusCode"] == 200
        assert data["productId"] == "p1"
        assert "status_code" not in data


class TestJobProgress:
    def test_state_case_insensitive(self):
        assert JobProgress.model_validate({"state": "paused_rate_limit"}).state == SyncJobState.PAUSED_RATE_LIMIT

    def test_unknown_state_rejected(self):
        with pytest.raises(ValidationError):
            JobProgress.model_validate({"state": "EXPLODED"})

    def test_retry_at_normalized(self):
        progress = JobProgress.model_validate({"retryAt": "2023-11-14T22:13:20Z"})
        assert progress.retry_at == 1_700_000_000_000

    def test_unparseable_retry_at_rejected(self):
        with pytest.raises(ValidationError):
            JobProgress.model_validate({"retryAt": "soon"})

    def test_provided_tracks_explicit_keys(self):
        progress = JobProgress.model_validate({"processed": 3, "retryAt": None})
        assert progress.provided("processed")
        assert progress.provided("retry_at")
        assert not progress.provided("total")
        assert not progress.provided("state")

    def test_throttle_settings(self):
        progress = JobProgress.model_validate({"throttleSettings": {"minDelayMs": 250, "concurrency": 4}})
        assert progress.throttle_settings.min_delay_ms == 250
        assert progress.throttle_settings.concurrency == 4


def test_user_uuid_accepted_by_both_models():
    uuid = "6512a9c4-0f3e-4b8a-9d2e-1c5b7a8e9f01"
    assert SyncEventIn.model_validate({"userId": uuid}).user_id == uuid
    assert JobProgress.model_validate({"state": "RUNNING", "total": 10, "userId": uuid}).user_id == uuid
    assert JobProgress.model_validate({"userId": 17}).user_id == "17"
