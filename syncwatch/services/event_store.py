"""
Durable event log and job snapshot store (SQLAlchemy)
"""

import logging
import threading
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ..config import DATABASE_URL
from ..db import init_db, make_engine, make_session_factory, session_scope
from ..errors import StoreNotReady
from ..models import SyncEvent, SyncJob
from ..schemas.event import SyncEventRecord
from ..snapshot import JobSnapshot, SyncJobState

logger = logging.getLogger("syncwatch.store")

# snapshot attribute -> sync_jobs column, for the columns that are renamed
_SNAPSHOT_COLUMNS = {
    "requests_last_60s": "requests_last60s",
    "error_429_count": "error429_count",
    "last_retry_after_seconds": "last_retry_after",
}

# set on insert only
_INSERT_ONLY = {"job_id", "tenant_id", "user_id", "created_at"}


def _column(attr: str) -> str:
    return _SNAPSHOT_COLUMNS.get(attr, attr)


def _row_to_snapshot(row: SyncJob) -> JobSnapshot:
    values = {}
    for attr in JobSnapshot.field_names():
        values[attr] = getattr(row, _column(attr))
    values["state"] = SyncJobState(values["state"])
    values["stall_detected"] = bool(values["stall_detected"])
    return JobSnapshot(**values)


def _row_to_record(row: SyncEvent) -> SyncEventRecord:
    return SyncEventRecord(
        job_id=row.job_id,
        timestamp_ms=row.timestamp_ms,
        timestamp=row.timestamp,
        workspace_id=row.workspace_id,
        user_id=row.user_id,
        product_id=row.product_id,
        listing_id=row.listing_id,
        operation=row.operation,
        http_method=row.http_method,
        endpoint_path=row.endpoint_path,
        status_code=row.status_code,
        duration_ms=row.duration_ms,
        request_id=row.request_id,
        retry_after_seconds=row.retry_after_seconds,
        rate_limit_headers=row.rate_limit_headers,
        error_code=row.error_code,
        error_message=row.error_message,
        payload_summary=row.payload_summary,
        response_snippet=row.response_snippet,
    )


class EventStore:
    """Append-only sync_events plus upsertable sync_jobs.

    Every method raises StoreNotReady until init() has run.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or DATABASE_URL
        self.engine = None
        self._session_factory = None
        self._ready = threading.Event()
        self._init_lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    def init(self) -> "EventStore":
        """Create engine and tables. Safe to call multiple times."""
        if self.ready:
            return self
        with self._init_lock:
            if self.ready:
                return self
            self.engine = make_engine(self.database_url)
            init_db(self.engine)
            self._session_factory = make_session_factory(self.engine)
            self._ready.set()
        logger.info("Event store ready", extra={"component": "store", "url": self.database_url})
        return self

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def close(self) -> None:
        with self._init_lock:
            self._ready.clear()
            if self.engine is not None:
                self.engine.dispose()
            self.engine = None
            self._session_factory = None

    def _sessions(self, operation: str):
        factory = self._session_factory
        if not self.ready or factory is None:
            raise StoreNotReady(operation)
        return session_scope(factory)

    # -- writes ---------------------------------------------------------

    def persist_event(self, job_id: str, record: SyncEventRecord) -> None:
        with self._sessions("persist_event") as s:
            s.add(SyncEvent(
                job_id=job_id,
                timestamp_ms=record.timestamp_ms,
                timestamp=record.timestamp,
                workspace_id=record.workspace_id,
                user_id=record.user_id,
                product_id=record.product_id,
                listing_id=record.listing_id,
                operation=record.operation,
                http_method=record.http_method,
                endpoint_path=record.endpoint_path,
                status_code=record.status_code,
                duration_ms=record.duration_ms,
                request_id=record.request_id,
                retry_after_seconds=record.retry_after_seconds,
                rate_limit_headers=record.rate_limit_headers,
                error_code=record.error_code,
                error_message=record.error_message,
                payload_summary=record.payload_summary,
                response_snippet=record.response_snippet,
            ))

    def update_job_snapshot(self, job_id: str, snapshot: JobSnapshot) -> str:
        """Upsert the sync_jobs row for job_id. Returns "inserted" or "updated"."""
        values = snapshot.to_dict()
        values["job_id"] = job_id
        try:
            return self._upsert(values)
        except IntegrityError:
            # another writer inserted the row first
            return self._upsert(values)

    def _upsert(self, values: dict) -> str:
        with self._sessions("update_job_snapshot") as s:
            row = s.get(SyncJob, values["job_id"])
            if row is None:
                s.add(SyncJob(**{_column(k): v for k, v in values.items()}))
                return "inserted"
            for attr, value in values.items():
                if attr in _INSERT_ONLY:
                    continue
                setattr(row, _column(attr), value)
            return "updated"

    # -- reads ----------------------------------------------------------

    def get_job_snapshot_from_db(self, job_id: str) -> Optional[JobSnapshot]:
        with self._sessions("get_job_snapshot_from_db") as s:
            row = s.get(SyncJob, job_id)
            return _row_to_snapshot(row) if row is not None else None

    def count_events_since(self, job_id: str, since_ms: int) -> int:
        with self._sessions("count_events_since") as s:
            stmt = (
                select(func.count(SyncEvent.id))
                .where(SyncEvent.job_id == job_id)
                .where(SyncEvent.timestamp_ms >= since_ms)
            )
            return int(s.execute(stmt).scalar() or 0)

    def fetch_events_before(self, job_id: str, cursor: Optional[int], limit: int) -> List[SyncEventRecord]:
        """Newest-first, strictly older than cursor when one is given."""
        with self._sessions("fetch_events_before") as s:
            stmt = select(SyncEvent).where(SyncEvent.job_id == job_id)
            if cursor is not None:
                stmt = stmt.where(SyncEvent.timestamp_ms < cursor)
            stmt = stmt.order_by(SyncEvent.timestamp_ms.desc(), SyncEvent.id.desc()).limit(limit)
            return [_row_to_record(r) for r in s.execute(stmt).scalars()]

    def fetch_events_after(self, job_id: str, after_ms: Optional[int], limit: int) -> List[SyncEventRecord]:
        """Oldest-first, strictly newer than after_ms when one is given."""
        with self._sessions("fetch_events_after") as s:
            stmt = select(SyncEvent).where(SyncEvent.job_id == job_id)
            if after_ms is not None:
                stmt = stmt.where(SyncEvent.timestamp_ms > after_ms)
            stmt = stmt.order_by(SyncEvent.timestamp_ms.asc(), SyncEvent.id.asc()).limit(limit)
            return [_row_to_record(r) for r in s.execute(stmt).scalars()]

    def active_job_ids(self, updated_after_ms: int, states: Iterable[SyncJobState]) -> List[str]:
        with self._sessions("active_job_ids") as s:
            stmt = (
                select(SyncJob.job_id)
                .where(SyncJob.updated_at > updated_after_ms)
                .where(SyncJob.state.in_([st.value for st in states]))
                .order_by(SyncJob.updated_at.desc())
            )
            return list(s.execute(stmt).scalars())
