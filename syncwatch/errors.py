"""
Error types raised by the observability engine
"""


class SyncWatchError(Exception):
    """Base class for engine errors"""


class StoreNotReady(SyncWatchError):
    """The durable store has not been initialized yet (or was closed)."""

    def __init__(self, operation: str = "unknown"):
        super().__init__(f"event store not initialized (operation={operation})")
        self.operation = operation
