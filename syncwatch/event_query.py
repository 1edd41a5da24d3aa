"""
Cursor pagination over the durable event log
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .config import EVENTS_PAGE_DEFAULT, EVENTS_PAGE_MAX, EVENTS_POLL_DEFAULT
from .errors import StoreNotReady
from .schemas.event import SyncEventRecord

Cursor = Union[int, str, None]


@dataclass
class EventPage:
    events: List[SyncEventRecord] = field(default_factory=list)
    next_cursor: Optional[int] = None
    has_more: bool = False

    @property
    def total(self) -> int:
        return len(self.events)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": [e.to_api() for e in self.events],
            "nextCursor": self.next_cursor,
            "total": self.total,
            "hasMore": self.has_more,
        }


def parse_cursor(cursor: Cursor) -> Optional[int]:
    if cursor is None or cursor == "":
        return None
    if isinstance(cursor, bool):
        raise ValueError(f"invalid cursor: {cursor!r}")
    if isinstance(cursor, str):
        cursor = cursor.strip()
    try:
        return int(cursor)
    except (TypeError, ValueError):
        raise ValueError(f"invalid cursor: {cursor!r}")


def clamp_limit(limit: Optional[int], default: int = EVENTS_PAGE_DEFAULT, maximum: int = EVENTS_PAGE_MAX) -> int:
    if limit is None:
        return default
    return max(1, min(int(limit), maximum))


class EventQueryService:
    """Reverse-chronological history for one job.

    Page boundaries are timestamps, so events inserted after a page was read
    (always newer than its cursor) never show up inside older pages.
    """

    def __init__(self, store):
        self.store = store

    def get_events(self, job_id: str, limit: Optional[int] = EVENTS_PAGE_DEFAULT, cursor: Cursor = None) -> EventPage:
        limit = clamp_limit(limit)
        before = parse_cursor(cursor)
        try:
            rows = self.store.fetch_events_before(job_id, before, limit + 1)
        except StoreNotReady:
            return EventPage()

        has_more = len(rows) > limit
        events = rows[:limit]
        next_cursor = events[-1].timestamp_ms if has_more else None
        return EventPage(events=events, next_cursor=next_cursor, has_more=has_more)

    def poll_new_events(self, job_id: str, after_ms: Cursor = None, limit: Optional[int] = EVENTS_POLL_DEFAULT) -> List[SyncEventRecord]:
        """Events strictly newer than after_ms, oldest first (for polling streams)"""
        limit = clamp_limit(limit, default=EVENTS_POLL_DEFAULT)
        try:
            return self.store.fetch_events_after(job_id, parse_cursor(after_ms), limit)
        except StoreNotReady:
            return []
