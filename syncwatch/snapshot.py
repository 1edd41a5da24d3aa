"""
Job snapshot: the continuously-mutated aggregate for one sync job
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Optional

from .config import (
    DEFAULT_THROTTLE_CONCURRENCY,
    DEFAULT_THROTTLE_MIN_DELAY_MS,
    DEFAULT_WORKSPACE_ID,
)


class SyncJobState(str, Enum):
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    PAUSED_RATE_LIMIT = "PAUSED_RATE_LIMIT"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({SyncJobState.COMPLETED, SyncJobState.FAILED})
ACTIVE_STATES = frozenset({SyncJobState.RUNNING, SyncJobState.PAUSED, SyncJobState.PAUSED_RATE_LIMIT})


@dataclass
class JobSnapshot:
    job_id: str
    created_at: int
    updated_at: int
    last_event_at: int
    tenant_id: int = DEFAULT_WORKSPACE_ID
    user_id: Optional[str] = None  # marketplace user UUID
    state: SyncJobState = SyncJobState.RUNNING

    # progress (as reported by the job runner)
    processed: int = 0
    total: int = 0
    completed: int = 0
    failed: int = 0
    current_product_id: Optional[str] = None
    current_step: Optional[str] = None

    # rate-limit coordination
    retry_at: Optional[int] = None  # epoch ms
    last_retry_after_seconds: Optional[float] = None

    # rolling metrics; requests_last_60s is approximate until recalculated
    total_requests: int = 0
    requests_last_60s: int = 0
    error_429_count: int = 0
    avg_latency_ms: int = 0

    # throttle context, informational
    throttle_min_delay_ms: int = DEFAULT_THROTTLE_MIN_DELAY_MS
    throttle_concurrency: int = DEFAULT_THROTTLE_CONCURRENCY

    stall_detected: bool = False

    @classmethod
    def new(cls, job_id: str, now: int, **overrides: Any) -> "JobSnapshot":
        return cls(job_id=job_id, created_at=now, updated_at=now, last_event_at=now, **overrides)

    @classmethod
    def field_names(cls):
        return [f.name for f in fields(cls)]

    def copy(self) -> "JobSnapshot":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data
