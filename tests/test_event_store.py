"""
Tests for the SQLAlchemy event store
"""

import pytest

from syncwatch.errors import StoreNotReady
from syncwatch.schemas import SyncEventRecord
from syncwatch.snapshot import ACTIVE_STATES, JobSnapshot, SyncJobState
from syncwatch.timeutil import iso_from_ms

NOW = 1_700_000_000_000


def _record(job_id, ts, **fields):
    return SyncEventRecord(job_id=job_id, timestamp_ms=ts, timestamp=iso_from_ms(ts), **fields)


class TestReadiness:
    def test_calls_before_init_raise_store_not_ready(self, unready_store):
        assert unready_store.ready is False
        with pytest.raises(StoreNotReady) as exc:
            unready_store.persist_event("job-1", _record("job-1", NOW))
        assert exc.value.operation == "persist_event"

        with pytest.raises(StoreNotReady):
            unready_store.get_job_snapshot_from_db("job-1")

    def test_init_is_idempotent(self, store):
        assert store.ready
        assert store.init() is store
        assert store.wait_ready(0)

    def test_close_makes_store_not_ready(self, tmp_path):
        from syncwatch.services.event_store import EventStore

        s = EventStore(f"sqlite:///{tmp_path / 'closed.db'}").init()
        s.close()
        assert not s.ready
        with pytest.raises(StoreNotReady):
            s.count_events_since("job-1", 0)


class TestSnapshots:
    def test_upsert_inserts_then_updates(self, store):
        snapshot = JobSnapshot.new("job-1", NOW, tenant_id=7, user_id="6512a9c4-0f3e-4b8a-9d2e-1c5b7a8e9f01")
        assert store.update_job_snapshot("job-1", snapshot) == "inserted"

        snapshot.state = SyncJobState.PAUSED_RATE_LIMIT
        snapshot.requests_last_60s = 12
        snapshot.error_429_count = 2
        snapshot.last_retry_after_seconds = 1.5
        snapshot.stall_detected = True
        assert store.update_job_snapshot("job-1", snapshot) == "updated"

        loaded = store.get_job_snapshot_from_db("job-1")
        assert loaded == snapshot

    def test_insert_only_fields_survive_updates(self, store):
        store.update_job_snapshot("job-1", JobSnapshot.new("job-1", NOW, tenant_id=7))
        later = JobSnapshot.new("job-1", NOW + 5_000, tenant_id=99)
        store.update_job_snapshot("job-1", later)

        loaded = store.get_job_snapshot_from_db("job-1")
        assert loaded.tenant_id == 7
        assert loaded.created_at == NOW
        assert loaded.updated_at == NOW + 5_000

    def test_missing_job(self, store):
        assert store.get_job_snapshot_from_db("nope") is None

    def test_active_job_ids(self, store):
        store.update_job_snapshot("running", JobSnapshot.new("running", NOW))
        store.update_job_snapshot("paused", JobSnapshot.new("paused", NOW - 1_000, state=SyncJobState.PAUSED))
        store.update_job_snapshot("done", JobSnapshot.new("done", NOW, state=SyncJobState.COMPLETED))
        store.update_job_snapshot("old", JobSnapshot.new("old", NOW - 600_000))

        ids = store.active_job_ids(NOW - 300_000, ACTIVE_STATES)
        assert ids == ["running", "paused"]


class TestEvents:
    def test_event_round_trip(self, store):
        record = _record(
            "job-1", NOW,
            status_code=429,
            retry_after_seconds=2.5,
            rate_limit_headers={"x-remaining-this-second": "0"},
            error_message="Too Many Requests",
        )
        store.persist_event("job-1", record)
        assert store.fetch_events_before("job-1", None, 10) == [record]

    def test_count_since_is_inclusive(self, store):
        for ts in (NOW - 60_001, NOW - 60_000, NOW):
            store.persist_event("job-1", _record("job-1", ts))
        store.persist_event("job-2", _record("job-2", NOW))

        assert store.count_events_since("job-1", NOW - 60_000) == 2
        assert store.count_events_since("job-1", 0) == 3
        assert store.count_events_since("job-3", 0) == 0

    def test_fetch_before_is_newest_first_and_strict(self, store):
        for ts in range(NOW, NOW + 5):
            store.persist_event("job-1", _record("job-1", ts))

        page = store.fetch_events_before("job-1", None, 3)
        assert [e.timestamp_ms for e in page] == [NOW + 4, NOW + 3, NOW + 2]

        older = store.fetch_events_before("job-1", NOW + 2, 10)
        assert [e.timestamp_ms for e in older] == [NOW + 1, NOW]

    def test_fetch_after_is_oldest_first_and_strict(self, store):
        for ts in range(NOW, NOW + 5):
            store.persist_event("job-1", _record("job-1", ts))

        newer = store.fetch_events_after("job-1", NOW + 2, 10)
        assert [e.timestamp_ms for e in newer] == [NOW + 3, NOW + 4]
        assert len(store.fetch_events_after("job-1", None, 2)) == 2
