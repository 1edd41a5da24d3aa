from .event import SyncEventIn, SyncEventRecord
from .progress import JobProgress, ThrottleSettings

__all__ = ["SyncEventIn", "SyncEventRecord", "JobProgress", "ThrottleSettings"]
