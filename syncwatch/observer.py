"""
Job lifecycle API
The contract between the external job runner (writes) and presentation
layers (reads). One SyncObserver per process is typical, but instances are
independent: each owns its cache, persistence worker and stall timer.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from .cache import SnapshotCache
from .config import (
    ACTIVE_JOB_WINDOW_SECONDS,
    DEBUG_RECENT_EVENTS,
    EVENTS_PAGE_DEFAULT,
    EVENTS_POLL_DEFAULT,
    PERSIST_FLUSH_TIMEOUT_SECONDS,
    RECALC_ON_TICK,
    ROLLING_WINDOW_MS,
    STALL_CHECK_INTERVAL_SECONDS,
    STALL_THRESHOLD_MS,
)
from .errors import StoreNotReady
from .event_query import Cursor, EventPage, EventQueryService
from .logging_config import job_context
from .metrics import apply_event
from .persistence import PersistenceQueue
from .schemas.event import SyncEventIn, SyncEventRecord
from .schemas.progress import JobProgress
from .services.event_store import EventStore
from .services.prometheus_metrics import prometheus_metrics
from .snapshot import ACTIVE_STATES, JobSnapshot, SyncJobState
from .stall_detector import StallDetector
from .timeutil import iso_from_ms, now_ms
from .views import build_debug_view, build_job_summary, build_status_view

logger = logging.getLogger("syncwatch.observer")

EventInput = Union[SyncEventIn, Mapping[str, Any]]
ProgressInput = Union[JobProgress, Mapping[str, Any]]

_PROGRESS_FIELDS = ("processed", "total", "completed", "failed", "current_product_id", "current_step")


class SyncObserver:
    """Job lifecycle API.

    Call start() (or use the observer as a context manager) before handing it
    to a job runner. Until then the persistence worker is not running and
    every durable write is applied inline, blocking the caller on SQL.
    """

    def __init__(self, store: Optional[EventStore] = None, *,
                 clock: Optional[Callable[[], int]] = None,
                 dispatcher: Optional[PersistenceQueue] = None,
                 stall_interval_seconds: float = STALL_CHECK_INTERVAL_SECONDS,
                 stall_threshold_ms: int = STALL_THRESHOLD_MS,
                 recalc_on_tick: bool = RECALC_ON_TICK,
                 window_ms: int = ROLLING_WINDOW_MS,
                 active_window_seconds: int = ACTIVE_JOB_WINDOW_SECONDS):
        self.store = store if store is not None else EventStore()
        self.clock = clock or now_ms
        self.window_ms = window_ms
        self.active_window_seconds = active_window_seconds
        self.cache = SnapshotCache()
        self.dispatcher = dispatcher if dispatcher is not None else PersistenceQueue(self.store)
        self.queries = EventQueryService(self.store)
        self.stall_detector = StallDetector(
            self.cache,
            self.dispatcher,
            interval_seconds=stall_interval_seconds,
            threshold_ms=stall_threshold_ms,
            clock=self.clock,
        )
        if recalc_on_tick:
            self.stall_detector.add_after_tick(self._recalculate_running)

    # -- lifecycle ------------------------------------------------------

    def start(self, init_store: bool = True) -> "SyncObserver":
        """Start the persistence worker and the stall timer"""
        if init_store and not self.store.ready:
            try:
                self.store.init()
            except Exception as e:
                # keep monitoring in memory; writes are skipped until the store is ready
                logger.error("Event store initialization failed", extra={
                    "component": "observer",
                    "error": str(e),
                })
        self.dispatcher.start()
        self.stall_detector.start()
        logger.info("Sync observer started", extra={"component": "observer"})
        return self

    def stop(self, timeout: float = PERSIST_FLUSH_TIMEOUT_SECONDS) -> None:
        self.stall_detector.stop(timeout)
        self.dispatcher.stop(timeout)
        logger.info("Sync observer stopped", extra={"component": "observer"})

    def flush(self, timeout: Optional[float] = PERSIST_FLUSH_TIMEOUT_SECONDS) -> bool:
        """Wait for queued durable writes"""
        return self.dispatcher.flush(timeout)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    # -- write path (job runner) ---------------------------------------

    def _load_or_create(self, job_id: str, now: int, **defaults) -> JobSnapshot:
        try:
            snapshot = self.store.get_job_snapshot_from_db(job_id)
        except StoreNotReady:
            snapshot = None
        except Exception as e:
            logger.error("Snapshot warm-start failed, starting fresh", extra={
                "component": "observer",
                "job_id": job_id,
                "error": str(e),
            })
            snapshot = None
        if snapshot is None:
            snapshot = JobSnapshot.new(job_id, now, **{k: v for k, v in defaults.items() if v is not None})
        return snapshot

    def log_event(self, job_id: Optional[str], event: Optional[EventInput]) -> Optional[SyncEventRecord]:
        """Record one outbound network call. Never raises for bad input or store trouble."""
        if not job_id:
            prometheus_metrics.increment_events_rejected("missing_job_id")
            logger.warning("No job_id provided for event", extra={"component": "observer"})
            return None

        try:
            payload = event if isinstance(event, SyncEventIn) else SyncEventIn.model_validate(event or {})
        except ValidationError as e:
            prometheus_metrics.increment_events_rejected("invalid_event")
            logger.warning("Malformed event dropped", extra={
                "component": "observer",
                "job_id": job_id,
                "error": str(e),
            })
            return None

        now = self.clock()
        with job_context(job_id):
            loader = lambda: self._load_or_create(  # noqa: E731
                job_id, now,
                tenant_id=payload.workspace_id,
                user_id=payload.user_id,
                current_product_id=payload.product_id,
            )
            with self.cache.locked(job_id, loader=loader) as snapshot:
                # strictly increasing per job, so a timestamp is an unambiguous cursor
                ts = now if snapshot.total_requests == 0 else max(now, snapshot.last_event_at + 1)
                record = SyncEventRecord.from_input(job_id, payload, ts, iso_from_ms(ts))
                self.dispatcher.submit_event(job_id, record)
                apply_event(snapshot, record, now, self.window_ms)
                self.dispatcher.submit_snapshot(job_id, snapshot.copy())
                self.stall_detector.track(job_id)

            prometheus_metrics.increment_events_logged(record.status_code)
            if record.is_rate_limited:
                prometheus_metrics.increment_rate_limited()
            if record.duration_ms > 0:
                prometheus_metrics.observe_call_latency(record.duration_ms)

            status = record.status_code
            level = logging.WARNING if status is None or status >= 400 else logging.DEBUG
            logger.log(level, "%s %s -> %s (%sms)", record.http_method, record.endpoint_path,
                       status or "ERROR", record.duration_ms, extra={
                           "component": "observer",
                           "job_id": job_id,
                           "operation": record.operation,
                           "status": status,
                           "latency_ms": record.duration_ms,
                       })
        return record

    def update_job_progress(self, job_id: Optional[str], progress: Optional[ProgressInput]) -> Optional[JobSnapshot]:
        """Coarse progress report. Only fields present in the report are applied."""
        if not job_id:
            prometheus_metrics.increment_events_rejected("missing_job_id")
            logger.warning("No job_id provided for progress update", extra={"component": "observer"})
            return None

        try:
            report = progress if isinstance(progress, JobProgress) else JobProgress.model_validate(progress or {})
        except ValidationError as e:
            prometheus_metrics.increment_events_rejected("invalid_progress")
            logger.warning("Malformed progress update dropped", extra={
                "component": "observer",
                "job_id": job_id,
                "error": str(e),
            })
            return None

        now = self.clock()
        throttle = report.throttle_settings
        with job_context(job_id):
            loader = lambda: self._load_or_create(  # noqa: E731
                job_id, now,
                tenant_id=report.workspace_id,
                user_id=report.user_id,
                throttle_min_delay_ms=throttle.min_delay_ms if throttle else None,
                throttle_concurrency=throttle.concurrency if throttle else None,
            )
            with self.cache.locked(job_id, loader=loader) as snapshot:
                self._apply_progress(snapshot, report, now)
                updated = snapshot.copy()
                self.dispatcher.submit_snapshot(job_id, updated.copy())
        prometheus_metrics.increment_progress_updates()
        return updated

    def _apply_progress(self, snapshot: JobSnapshot, report: JobProgress, now: int) -> None:
        if report.provided("state") and report.state is not None and report.state != snapshot.state:
            if snapshot.state.is_terminal:
                logger.warning("Ignoring state change out of terminal state", extra={
                    "component": "observer",
                    "job_id": snapshot.job_id,
                    "from_state": snapshot.state.value,
                    "to_state": report.state.value,
                })
            else:
                snapshot.state = report.state

        for name in _PROGRESS_FIELDS:
            value = getattr(report, name)
            if report.provided(name) and value is not None:
                setattr(snapshot, name, value)

        # an explicit None clears a pending rate-limit resume time
        if report.provided("retry_at"):
            snapshot.retry_at = report.retry_at

        if report.throttle_settings is not None:
            if report.throttle_settings.min_delay_ms:
                snapshot.throttle_min_delay_ms = report.throttle_settings.min_delay_ms
            if report.throttle_settings.concurrency:
                snapshot.throttle_concurrency = report.throttle_settings.concurrency

        snapshot.updated_at = report.updated_at if report.updated_at is not None else now

    def clear_job(self, job_id: str) -> bool:
        """Forget a finished job in memory. Durable rows stay queryable."""
        self.stall_detector.untrack(job_id)
        removed = self.cache.evict(job_id)
        if removed:
            logger.info("Job cleared from cache", extra={"component": "observer", "job_id": job_id})
        return removed

    def recalculate_last_60s(self, job_id: str, now: Optional[int] = None) -> int:
        """Exact trailing-window request count from the durable log"""
        if now is None:
            now = self.clock()
        try:
            count = self.store.count_events_since(job_id, now - self.window_ms)
        except StoreNotReady:
            return 0
        if job_id in self.cache:
            with self.cache.locked(job_id) as snapshot:
                if snapshot is not None:
                    snapshot.requests_last_60s = count
                    self.dispatcher.submit_snapshot(job_id, snapshot.copy())
        return count

    def _recalculate_running(self, now: int) -> None:
        for job_id in self.cache.job_ids():
            snapshot = self.cache.get(job_id)
            if snapshot is None or snapshot.state != SyncJobState.RUNNING:
                continue
            try:
                self.recalculate_last_60s(job_id, now)
            except Exception as e:
                logger.error("Rolling window recalculation failed", extra={
                    "component": "observer",
                    "job_id": job_id,
                    "error": str(e),
                })

    # -- read path (presentation) ---------------------------------------

    def get_job_snapshot(self, job_id: str) -> Optional[JobSnapshot]:
        """Cache-only read; None if this process has not seen the job"""
        return self.cache.get(job_id)

    def get_active_job_ids(self) -> List[str]:
        """Jobs updated in the last few minutes and not finished, from the durable store"""
        since = self.clock() - self.active_window_seconds * 1000
        try:
            return self.store.active_job_ids(since, ACTIVE_STATES)
        except StoreNotReady:
            return []

    def get_events(self, job_id: str, limit: Optional[int] = EVENTS_PAGE_DEFAULT, cursor: Cursor = None) -> EventPage:
        return self.queries.get_events(job_id, limit, cursor)

    def poll_new_events(self, job_id: str, after_ms: Cursor = None,
                        limit: Optional[int] = EVENTS_POLL_DEFAULT) -> List[SyncEventRecord]:
        return self.queries.poll_new_events(job_id, after_ms, limit)

    def _snapshot_for_read(self, job_id: str, warm: bool = False) -> Optional[JobSnapshot]:
        snapshot = self.cache.get(job_id)
        if snapshot is not None:
            return snapshot
        try:
            stored = self.store.get_job_snapshot_from_db(job_id)
        except StoreNotReady:
            return None
        if stored is None or not warm:
            return stored
        with self.cache.locked(job_id, loader=lambda: stored) as live:
            return live.copy()

    def get_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Dashboard status view; falls back to the durable store and warms the cache"""
        snapshot = self._snapshot_for_read(job_id, warm=True)
        if snapshot is None:
            return None
        return build_status_view(snapshot, self.clock())

    def get_debug_info(self, job_id: str, recent: int = DEBUG_RECENT_EVENTS) -> Optional[Dict[str, Any]]:
        snapshot = self._snapshot_for_read(job_id)
        if snapshot is None:
            return None
        page = self.get_events(job_id, recent)
        return build_debug_view(snapshot, page.events)

    def list_active_jobs(self) -> List[Dict[str, Any]]:
        return [build_job_summary(job_id, self._snapshot_for_read(job_id)) for job_id in self.get_active_job_ids()]
