from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..config import (
    DEFAULT_WORKSPACE_ID,
    ERROR_MESSAGE_MAX,
    PAYLOAD_SUMMARY_MAX,
    RESPONSE_SNIPPET_MAX,
)


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None:
        return None
    return value[:limit]


def _as_optional_str(value: Any) -> Any:
    # Ids arrive as ints from CSV rows and as strings (user UUIDs) from the API
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class SyncEventIn(BaseModel):
    """One outbound network call as reported by the job runner.

    Accepts snake_case or camelCase keys; unknown keys are ignored.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    workspace_id: Optional[int] = None
    user_id: Optional[str] = None
    product_id: Optional[str] = None
    listing_id: Optional[str] = None
    operation: Optional[str] = None
    http_method: Optional[str] = None
    endpoint_path: Optional[str] = None
    status_code: Optional[int] = None
    duration_ms: Optional[int] = None
    request_id: Optional[str] = None
    retry_after_seconds: Optional[float] = None
    rate_limit_headers: Optional[Any] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    payload_summary: Optional[str] = None
    response_snippet: Optional[str] = None

    @field_validator("user_id", "product_id", "listing_id", "request_id", "error_code", mode="before")
    @classmethod
    def _coerce_ids(cls, value):
        return _as_optional_str(value)

    @field_validator("duration_ms", mode="before")
    @classmethod
    def _round_duration(cls, value):
        if isinstance(value, float):
            return int(round(value))
        return value

    @field_validator("error_message", "payload_summary", "response_snippet", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("error_message", mode="after")
    @classmethod
    def _truncate_error(cls, value):
        return _truncate(value, ERROR_MESSAGE_MAX)

    @field_validator("payload_summary", mode="after")
    @classmethod
    def _truncate_payload(cls, value):
        return _truncate(value, PAYLOAD_SUMMARY_MAX)

    @field_validator("response_snippet", mode="after")
    @classmethod
    def _truncate_snippet(cls, value):
        return _truncate(value, RESPONSE_SNIPPET_MAX)

    @field_validator("status_code", "retry_after_seconds", mode="after")
    @classmethod
    def _falsy_to_none(cls, value):
        # 0 is not a real status code / retry hint
        return value or None


class SyncEventRecord(BaseModel):
    """Normalized, immutable event row."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    job_id: str
    timestamp_ms: int
    timestamp: str
    workspace_id: int = DEFAULT_WORKSPACE_ID
    user_id: Optional[str] = None
    product_id: Optional[str] = None
    listing_id: Optional[str] = None
    operation: str = "unknown"
    http_method: str = "GET"
    endpoint_path: str = ""
    status_code: Optional[int] = None
    duration_ms: int = 0
    request_id: Optional[str] = None
    retry_after_seconds: Optional[float] = None
    rate_limit_headers: Optional[Any] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = Field(None, max_length=ERROR_MESSAGE_MAX)
    payload_summary: Optional[str] = Field(None, max_length=PAYLOAD_SUMMARY_MAX)
    response_snippet: Optional[str] = Field(None, max_length=RESPONSE_SNIPPET_MAX)

    @classmethod
    def from_input(cls, job_id: str, event: SyncEventIn, timestamp_ms: int, timestamp: str) -> "SyncEventRecord":
        return cls(
            job_id=job_id,
            timestamp_ms=timestamp_ms,
            timestamp=timestamp,
            workspace_id=event.workspace_id or DEFAULT_WORKSPACE_ID,
            user_id=event.user_id,
            product_id=event.product_id,
            listing_id=event.listing_id,
            operation=event.operation or "unknown",
            http_method=(event.http_method or "GET").upper(),
            endpoint_path=event.endpoint_path or "",
            status_code=event.status_code,
            duration_ms=event.duration_ms or 0,
            request_id=event.request_id,
            retry_after_seconds=event.retry_after_seconds,
            rate_limit_headers=event.rate_limit_headers or None,
            error_code=event.error_code,
            error_message=event.error_message,
            payload_summary=event.payload_summary,
            response_snippet=event.response_snippet,
        )

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    def to_api(self) -> Dict[str, Any]:
        """camelCase dict for presentation layers"""
        return self.model_dump(by_alias=True)
