from .sync_event import SyncEvent
from .sync_job import SyncJob

__all__ = ["SyncEvent", "SyncJob"]
