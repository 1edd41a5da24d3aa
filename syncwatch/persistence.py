"""
Persistence dispatcher
Fire-and-forget durable writes: a bounded queue drained by one worker thread.
Write failures are logged and counted, never raised to the caller.
"""

import logging
import queue
import threading
import time
from typing import Any, Dict, Optional

from .config import PERSIST_FLUSH_TIMEOUT_SECONDS, PERSIST_QUEUE_MAX_DEPTH
from .errors import StoreNotReady
from .schemas.event import SyncEventRecord
from .services.prometheus_metrics import prometheus_metrics
from .snapshot import JobSnapshot

logger = logging.getLogger("syncwatch.persistence")

KIND_EVENT = "event"
KIND_SNAPSHOT = "snapshot"

_STOP = object()


class PersistenceQueue:
    """Applies durable writes in submission order.

    Until start() is called (and after stop()), writes are applied inline
    in the caller's thread.
    """

    def __init__(self, store, max_depth: int = PERSIST_QUEUE_MAX_DEPTH):
        self.store = store
        self.max_depth = max_depth
        self.queue: "queue.Queue[Any]" = queue.Queue(maxsize=max_depth)
        self._worker: Optional[threading.Thread] = None
        self._pending = 0
        self._pending_cond = threading.Condition()
        self._rate_limit_tokens: Dict[str, Dict[str, float]] = {}

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self):
        """Start the writer thread"""
        if self.running:
            return
        self._worker = threading.Thread(target=self._worker_loop, name="syncwatch-persist", daemon=True)
        self._worker.start()
        logger.info("Persistence worker started", extra={
            "component": "persistence",
            "max_depth": self.max_depth,
        })

    def stop(self, timeout: float = PERSIST_FLUSH_TIMEOUT_SECONDS):
        """Drain pending writes and stop the writer thread"""
        if not self.running:
            return
        self.flush(timeout)
        self.queue.put(_STOP)
        self._worker.join(timeout)
        self._worker = None
        logger.info("Persistence worker stopped", extra={"component": "persistence"})

    def submit_event(self, job_id: str, record: SyncEventRecord) -> bool:
        return self._submit(KIND_EVENT, job_id, record)

    def submit_snapshot(self, job_id: str, snapshot: JobSnapshot) -> bool:
        # callers hand over a private copy; the cache keeps mutating its own
        return self._submit(KIND_SNAPSHOT, job_id, snapshot)

    def flush(self, timeout: Optional[float] = PERSIST_FLUSH_TIMEOUT_SECONDS) -> bool:
        """Block until every submitted write has been applied. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._pending_cond:
            while self._pending > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._pending_cond.wait(remaining)
        return True

    def _submit(self, kind: str, job_id: str, payload) -> bool:
        if not self.running:
            self._apply(kind, job_id, payload)
            return True

        with self._pending_cond:
            self._pending += 1
        try:
            self.queue.put_nowait((kind, job_id, payload))
        except queue.Full:
            self._done()
            prometheus_metrics.increment_persist_drops()
            self._log_backpressure(kind, job_id)
            return False
        prometheus_metrics.set_persist_queue_depth(self.queue.qsize())
        return True

    def _done(self):
        with self._pending_cond:
            self._pending -= 1
            if self._pending <= 0:
                self._pending = 0
                self._pending_cond.notify_all()

    def _worker_loop(self):
        while True:
            item = self.queue.get()
            if item is _STOP:
                self.queue.task_done()
                break
            kind, job_id, payload = item
            try:
                self._apply(kind, job_id, payload)
            finally:
                self._done()
                self.queue.task_done()
            prometheus_metrics.set_persist_queue_depth(self.queue.qsize())

    def _apply(self, kind: str, job_id: str, payload):
        start = time.perf_counter()
        try:
            if kind == KIND_EVENT:
                self.store.persist_event(job_id, payload)
            else:
                self.store.update_job_snapshot(job_id, payload)
        except StoreNotReady:
            # startup race: nothing to write to yet
            prometheus_metrics.increment_persist_skipped(kind)
            logger.debug("Store not ready, write skipped", extra={
                "component": "persistence",
                "job_id": job_id,
                "kind": kind,
            })
            return
        except Exception as e:
            prometheus_metrics.increment_persist_failures(kind)
            logger.error("Durable write failed", extra={
                "component": "persistence",
                "job_id": job_id,
                "kind": kind,
                "operation": getattr(payload, "operation", None),
                "error": str(e),
            })
            return
        prometheus_metrics.increment_persist_writes(kind)
        prometheus_metrics.observe_persist_seconds(kind, time.perf_counter() - start)

    def _log_backpressure(self, kind: str, job_id: str):
        """Log dropped write (rate limited)"""
        # log first occurrence, then every 100th, and at least once a minute
        token = self._rate_limit_tokens.setdefault("backpressure", {"count": 0, "last_log": 0.0})
        token["count"] += 1

        should_log = (token["count"] == 1 or
                      token["count"] % 100 == 0 or
                      time.time() - token["last_log"] > 60)

        if should_log:
            logger.warning("Persistence queue full - write dropped", extra={
                "component": "persistence",
                "event": "backpressure",
                "job_id": job_id,
                "kind": kind,
                "max_depth": self.max_depth,
                "drop_count": token["count"],
            })
            token["last_log"] = time.time()
