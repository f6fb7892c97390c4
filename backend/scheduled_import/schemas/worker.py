from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

CONVERSION_ERROR_LIMIT = 10


class ChunkResult(BaseModel):
    """Response of the import worker for one chunk."""

    records_inserted: int = Field(default=0, ge=0)
    records_updated: int = Field(default=0, ge=0)
    has_more: bool = False
    next_offset: Optional[int] = Field(default=None, ge=0)
    total_rows: Optional[int] = Field(default=None, ge=0)

    @field_validator("records_inserted", "records_updated", mode="before")
    @classmethod
    def _none_is_zero(cls, value):
        return 0 if value is None else value


class ConversionResult(BaseModel):
    """Response of the conversion worker for one batch."""

    converted: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    total: Optional[int] = Field(default=None, ge=0)
    errors: list[str] = Field(default_factory=list)

    @field_validator("errors", mode="before")
    @classmethod
    def _flatten_errors(cls, value):
        if value is None:
            return []
        return [_describe_error(item) for item in list(value)[:CONVERSION_ERROR_LIMIT]]


def _describe_error(item: Any) -> str:
    # The worker reports {gameId, gameName, error}; keep one line per item.
    if isinstance(item, dict):
        name = item.get("gameName") or item.get("name")
        ident = item.get("gameId") or item.get("id")
        message = item.get("error") or item.get("message") or ""
        label = " ".join(str(part) for part in (name, f"({ident})" if ident else None) if part)
        return f"{label}: {message}" if label else str(message)
    return str(item)
