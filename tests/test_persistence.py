"""
Tests for the persistence dispatcher
"""

import logging
import threading
from unittest.mock import MagicMock

from syncwatch.persistence import PersistenceQueue
from syncwatch.schemas import SyncEventRecord
from syncwatch.snapshot import JobSnapshot
from syncwatch.timeutil import iso_from_ms

NOW = 1_700_000_000_000


def _record(ts=NOW, job_id="job-1"):
    return SyncEventRecord(job_id=job_id, timestamp_ms=ts, timestamp=iso_from_ms(ts), status_code=200)


def test_writes_inline_until_started(store):
    dispatcher = PersistenceQueue(store)
    assert dispatcher.running is False

    assert dispatcher.submit_event("job-1", _record()) is True
    assert dispatcher.submit_snapshot("job-1", JobSnapshot.new("job-1", NOW)) is True

    assert store.count_events_since("job-1", 0) == 1
    assert store.get_job_snapshot_from_db("job-1") is not None


def test_worker_applies_writes_in_order(store):
    dispatcher = PersistenceQueue(store)
    dispatcher.start()
    try:
        snapshot = JobSnapshot.new("job-1", NOW)
        for i in range(50):
            dispatcher.submit_event("job-1", _record(NOW + i))
            snapshot.total_requests = i + 1
            dispatcher.submit_snapshot("job-1", snapshot.copy())
        assert dispatcher.flush(10) is True
    finally:
        dispatcher.stop()

    assert dispatcher.running is False
    assert store.count_events_since("job-1", 0) == 50
    # last submitted snapshot wins
    assert store.get_job_snapshot_from_db("job-1").total_requests == 50


def test_write_failures_are_absorbed(caplog):
    failing = MagicMock()
    failing.persist_event.side_effect = RuntimeError("disk full")
    dispatcher = PersistenceQueue(failing)

    with caplog.at_level(logging.ERROR, logger="syncwatch.persistence"):
        assert dispatcher.submit_event("job-1", _record()) is True

    failing.persist_event.assert_called_once()
    assert any("Durable write failed" in r.getMessage() for r in caplog.records)


def test_store_not_ready_is_skipped(unready_store, caplog):
    dispatcher = PersistenceQueue(unready_store)
    with caplog.at_level(logging.ERROR, logger="syncwatch.persistence"):
        dispatcher.submit_event("job-1", _record())
        dispatcher.submit_snapshot("job-1", JobSnapshot.new("job-1", NOW))
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


def test_full_queue_drops_write():
    entered = threading.Event()
    release = threading.Event()

    blocking = MagicMock()

    def slow_persist(job_id, record):
        entered.set()
        release.wait(5)

    blocking.persist_event.side_effect = slow_persist
    dispatcher = PersistenceQueue(blocking, max_depth=1)
    dispatcher.start()
    try:
        assert dispatcher.submit_event("job-1", _record(NOW)) is True
        assert entered.wait(5)
        # worker is busy with the first write; one slot left
        assert dispatcher.submit_event("job-1", _record(NOW + 1)) is True
        assert dispatcher.submit_event("job-1", _record(NOW + 2)) is False
    finally:
        release.set()
        dispatcher.flush(5)
        dispatcher.stop()

    assert blocking.persist_event.call_count == 2


def test_flush_without_worker_returns_immediately(store):
    assert PersistenceQueue(store).flush(0) is True
