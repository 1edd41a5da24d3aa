"""
Stall detection
Periodic scan of jobs that have logged events in this process; flags RUNNING
jobs with no recent activity.
Detection is advisory: state is never changed and no work is cancelled.
"""

import logging
import threading
from typing import Callable, List, Optional, Set

from .config import STALL_CHECK_INTERVAL_SECONDS, STALL_THRESHOLD_MS
from .services.prometheus_metrics import prometheus_metrics
from .snapshot import SyncJobState
from .timeutil import now_ms

logger = logging.getLogger("syncwatch.stall")


class StallDetector:
    def __init__(self, cache, dispatcher,
                 interval_seconds: float = STALL_CHECK_INTERVAL_SECONDS,
                 threshold_ms: int = STALL_THRESHOLD_MS,
                 clock: Callable[[], int] = now_ms):
        self.cache = cache
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self.threshold_ms = threshold_ms
        self.clock = clock
        self._after_tick: List[Callable[[int], None]] = []
        # jobs that have logged an event in this process; only these can stall
        self._tracked: Set[str] = set()
        self._tracked_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def track(self, job_id: str) -> None:
        with self._tracked_lock:
            self._tracked.add(job_id)

    def untrack(self, job_id: str) -> None:
        with self._tracked_lock:
            self._tracked.discard(job_id)

    def tracked_ids(self) -> List[str]:
        with self._tracked_lock:
            return list(self._tracked)

    def add_after_tick(self, fn: Callable[[int], None]) -> None:
        """Register work to run on the same timer, after each scan"""
        self._after_tick.append(fn)

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Stall detector already running", extra={"component": "stall_detector"})
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="syncwatch-stall", daemon=True)
        self._thread.start()
        logger.info("Stall detector started", extra={
            "component": "stall_detector",
            "interval_seconds": self.interval_seconds,
            "threshold_ms": self.threshold_ms,
        })

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self):
        # wait() doubles as the timer and the shutdown signal
        while not self._stop.wait(self.interval_seconds):
            self.run_once()

    def run_once(self) -> List[str]:
        """One timer tick: scan, then scheduled extras. Never raises."""
        now = self.clock()
        try:
            flagged = self.tick(now)
        except Exception as e:
            prometheus_metrics.increment_stall_scan_errors()
            logger.error("Stall scan failed, skipping tick", extra={
                "component": "stall_detector",
                "error": str(e),
            })
            return []
        for fn in self._after_tick:
            try:
                fn(now)
            except Exception as e:
                logger.error("Post-scan task failed", extra={
                    "component": "stall_detector",
                    "task": getattr(fn, "__name__", repr(fn)),
                    "error": str(e),
                })
        return flagged

    def tick(self, now: Optional[int] = None) -> List[str]:
        """Flag stalled jobs; returns the ids flagged on this tick."""
        if now is None:
            now = self.clock()
        flagged = []
        for job_id in self.tracked_ids():
            if job_id not in self.cache:
                continue
            with self.cache.locked(job_id) as snapshot:
                if snapshot is None or snapshot.state != SyncJobState.RUNNING:
                    continue
                idle_ms = now - snapshot.last_event_at
                if idle_ms <= self.threshold_ms:
                    continue
                first_detection = not snapshot.stall_detected
                snapshot.stall_detected = True
                snapshot.updated_at = now
                pending = snapshot.copy()
                self.dispatcher.submit_snapshot(job_id, pending)
            flagged.append(job_id)
            if first_detection:
                prometheus_metrics.increment_stalls_detected()
            logger.warning("STALL_DETECTED", extra={
                "component": "stall_detector",
                "job_id": job_id,
                "idle_seconds": round(idle_ms / 1000),
                "current_product_id": pending.current_product_id or "unknown",
                "current_step": pending.current_step or "unknown",
            })
        return flagged
