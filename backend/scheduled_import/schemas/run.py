from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ConversionSummary(BaseModel):
    """
    Outcome of the conversion phase.

    When the worker times out or is down, the batch size is unknown: `error`
    carries the cause, `errors` repeats it, and the counts stay at 0.
    """

    ran: bool = True
    converted: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class RunReport(BaseModel):
    status: Literal["completed", "failed", "skipped"]
    schedule_id: Optional[str] = None
    chunks_processed: int = 0
    records_inserted: int = 0
    records_updated: int = 0
    start_offset: int = 0
    final_offset: int = 0
    total_rows: Optional[int] = None
    conversion: Optional[ConversionSummary] = None
    next_run_at: Optional[datetime] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None

    @property
    def conversion_ran(self) -> bool:
        return self.conversion is not None and self.conversion.ran


class RunFailure(BaseModel):
    status: Literal["failed"] = "failed"
    error: str
