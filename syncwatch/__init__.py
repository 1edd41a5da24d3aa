"""
Sync job observability engine
"""

from .config import APP_VERSION as __version__
from .errors import StoreNotReady, SyncWatchError
from .event_query import EventPage, EventQueryService
from .observer import SyncObserver
from .persistence import PersistenceQueue
from .schemas import JobProgress, SyncEventIn, SyncEventRecord, ThrottleSettings
from .services.event_store import EventStore
from .snapshot import JobSnapshot, SyncJobState
from .stall_detector import StallDetector

__all__ = [
    "EventPage",
    "EventQueryService",
    "EventStore",
    "JobProgress",
    "JobSnapshot",
    "PersistenceQueue",
    "StallDetector",
    "StoreNotReady",
    "SyncEventIn",
    "SyncEventRecord",
    "SyncJobState",
    "SyncObserver",
    "SyncWatchError",
    "ThrottleSettings",
]
