"""
In-memory snapshot cache with one lock per job
"""

import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .services.prometheus_metrics import prometheus_metrics
from .snapshot import JobSnapshot


class _Entry:
    __slots__ = ("snapshot",)

    def __init__(self):
        self.snapshot: Optional[JobSnapshot] = None


class SnapshotCache:
    """job_id -> JobSnapshot.

    Mutation goes through locked(job_id), which serializes work on one job
    only. The registry lock is held just long enough to find or create a
    job's lock, never while a snapshot is mutated.
    """

    def __init__(self):
        self._snapshots: Dict[str, JobSnapshot] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, job_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(job_id)
            if lock is None:
                lock = self._locks[job_id] = threading.RLock()
            return lock

    def get(self, job_id: str) -> Optional[JobSnapshot]:
        snapshot = self._snapshots.get(job_id)
        return snapshot.copy() if snapshot is not None else None

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    def job_ids(self) -> List[str]:
        """Point-in-time copy of the tracked job ids"""
        with self._registry_lock:
            return list(self._snapshots.keys())

    @contextmanager
    def locked(self, job_id: str, loader: Optional[Callable[[], JobSnapshot]] = None) -> Iterator[Optional[JobSnapshot]]:
        """Yield the live snapshot for job_id under its lock.

        When the job is not cached and a loader is given, the loader's result
        is cached first. Yields None if the job is absent and there is no loader.
        """
        with self._lock_for(job_id):
            snapshot = self._snapshots.get(job_id)
            if snapshot is None and loader is not None:
                snapshot = loader()
                with self._registry_lock:
                    self._snapshots[job_id] = snapshot
                prometheus_metrics.set_cached_jobs(len(self._snapshots))
            yield snapshot

    def put(self, snapshot: JobSnapshot) -> None:
        with self._lock_for(snapshot.job_id):
            with self._registry_lock:
                self._snapshots[snapshot.job_id] = snapshot
        prometheus_metrics.set_cached_jobs(len(self._snapshots))

    def evict(self, job_id: str) -> bool:
        # the job lock stays registered so concurrent holders and waiters share it
        with self._lock_for(job_id):
            with self._registry_lock:
                removed = self._snapshots.pop(job_id, None)
        prometheus_metrics.set_cached_jobs(len(self._snapshots))
        return removed is not None

    def clear(self) -> None:
        for job_id in self.job_ids():
            self.evict(job_id)
        prometheus_metrics.set_cached_jobs(0)
