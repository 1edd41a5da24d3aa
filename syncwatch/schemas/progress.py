from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from ..snapshot import SyncJobState
from ..timeutil import normalize_epoch_ms
from .event import _as_optional_str


class ThrottleSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    min_delay_ms: Optional[int] = None
    concurrency: Optional[int] = None


class JobProgress(BaseModel):
    """Coarse progress report from the job runner.

    Only fields present in the report are applied (see model_fields_set).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    state: Optional[SyncJobState] = None
    processed: Optional[int] = None
    total: Optional[int] = None
    completed: Optional[int] = None
    failed: Optional[int] = None
    current_product_id: Optional[str] = None
    current_step: Optional[str] = None
    retry_at: Optional[int] = None
    updated_at: Optional[int] = None
    throttle_settings: Optional[ThrottleSettings] = None
    workspace_id: Optional[int] = None
    user_id: Optional[str] = None

    @field_validator("state", mode="before")
    @classmethod
    def _upper_state(cls, value: Any):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("current_product_id", "user_id", mode="before")
    @classmethod
    def _ids_as_str(cls, value: Any):
        return _as_optional_str(value)

    @field_validator("retry_at", "updated_at", mode="before")
    @classmethod
    def _epoch_ms(cls, value: Any):
        return normalize_epoch_ms(value)

    def provided(self, name: str) -> bool:
        return name in self.model_fields_set
