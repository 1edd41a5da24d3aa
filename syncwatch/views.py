"""
View builders for presentation layers
Plain dicts with camelCase keys, ready for JSON encoding by whatever surface
serves dashboards.
"""

import math
from typing import Any, Dict, Iterable, Optional

from .schemas.event import SyncEventRecord
from .snapshot import JobSnapshot
from .timeutil import round_half_up


def _retry_in_seconds(retry_at: Optional[int], now_ms: int) -> Optional[int]:
    if not retry_at or retry_at <= now_ms:
        return None
    return math.ceil((retry_at - now_ms) / 1000)


def build_request_counters(snapshot: JobSnapshot) -> Dict[str, Any]:
    """Request counters. last60s is approximate between recalculations."""
    return {
        "last60s": snapshot.requests_last_60s,
        "last60sApproximate": True,
        "total": snapshot.total_requests,
        "error429Count": snapshot.error_429_count,
        "avgLatencyMs": snapshot.avg_latency_ms,
        "lastRetryAfter": snapshot.last_retry_after_seconds,
    }


def build_throttle_settings(snapshot: JobSnapshot) -> Dict[str, Any]:
    return {
        "minDelayMs": snapshot.throttle_min_delay_ms,
        "concurrency": snapshot.throttle_concurrency,
    }


def build_status_view(snapshot: JobSnapshot, now_ms: int) -> Dict[str, Any]:
    """Dashboard status payload for one job"""
    processed = snapshot.processed
    if processed is None:
        processed = (snapshot.completed or 0) + (snapshot.failed or 0)
    total = snapshot.total or 0

    return {
        "jobId": snapshot.job_id,
        "state": snapshot.state.value,
        "processed": processed,
        "total": total,
        "completed": snapshot.completed,
        "failed": snapshot.failed,
        "remaining": max(0, total - processed),
        "percent": round_half_up(processed / total * 100) if total > 0 else 0,
        "currentProduct": snapshot.current_product_id,
        "currentStep": snapshot.current_step,
        "retryAt": snapshot.retry_at,
        "retryInSeconds": _retry_in_seconds(snapshot.retry_at, now_ms),
        "lastEventAt": snapshot.last_event_at,
        "updatedAt": snapshot.updated_at,
        "throttleSettings": build_throttle_settings(snapshot),
        "requestCounters": build_request_counters(snapshot),
        "stallDetected": snapshot.stall_detected,
    }


def build_job_summary(job_id: str, snapshot: Optional[JobSnapshot]) -> Dict[str, Any]:
    """Compact row for the active-jobs picker"""
    return {
        "jobId": job_id,
        "state": snapshot.state.value if snapshot else "UNKNOWN",
        "processed": snapshot.processed if snapshot else 0,
        "total": snapshot.total if snapshot else 0,
        "lastEventTimestamp": snapshot.last_event_at if snapshot else None,
    }


def build_debug_view(snapshot: JobSnapshot, recent_events: Iterable[SyncEventRecord]) -> Dict[str, Any]:
    return {
        "snapshot": {
            "jobId": snapshot.job_id,
            "state": snapshot.state.value,
            "processed": snapshot.processed,
            "total": snapshot.total,
            "currentProduct": snapshot.current_product_id,
            "currentStep": snapshot.current_step,
            "retryAt": snapshot.retry_at,
            "lastEventAt": snapshot.last_event_at,
            "updatedAt": snapshot.updated_at,
            "stallDetected": snapshot.stall_detected,
        },
        "counters": build_request_counters(snapshot),
        "throttleSettings": build_throttle_settings(snapshot),
        "recentEvents": [e.to_api() for e in recent_events],
    }
