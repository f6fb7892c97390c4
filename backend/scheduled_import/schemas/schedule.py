from __future__ import annotations

from datetime import datetime, time, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScheduleStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    IMPORTING = "importing"
    CONVERTING = "converting"
    COMPLETED = "completed"
    FAILED = "failed"


IN_PROGRESS_STATUSES = frozenset(
    {ScheduleStatus.RUNNING, ScheduleStatus.IMPORTING, ScheduleStatus.CONVERTING}
)


class ScheduleState(BaseModel):
    """Snapshot of one import schedule row at a given revision."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    tenant: str
    source_url: str
    enabled: bool
    scheduled_time: time
    auto_convert_images: bool
    status: ScheduleStatus
    current_offset: int = Field(ge=0)
    total_rows: Optional[int] = None
    error_message: Optional[str] = None
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    heartbeat_at: Optional[datetime] = None
    revision: int
    updated_at: Optional[datetime] = None

    @field_validator("last_run_at", "next_run_at", "heartbeat_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value):
        # SQLite hands back naive datetimes even for timezone-aware columns.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def in_progress(self) -> bool:
        return self.status in IN_PROGRESS_STATUSES


class ScheduleUpsert(BaseModel):
    source_url: str = Field(..., min_length=1)
    enabled: bool = False
    scheduled_time: time = time(2, 0)
    auto_convert_images: bool = False
