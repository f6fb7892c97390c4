from __future__ import annotations

from datetime import datetime, timezone

from scheduled_import.schemas.worker import ChunkResult, ConversionResult

NOW = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)
SOURCE_URL = "https://storage.example.com/game-images/csv_imports/games.csv"


def chunk(inserted: int = 0, updated: int = 0, next_offset: int | None = None, total_rows: int | None = None):
    return ChunkResult(
        records_inserted=inserted,
        records_updated=updated,
        has_more=next_offset is not None,
        next_offset=next_offset,
        total_rows=total_rows,
    )


class FakeImportWorker:
    """Plays back a script of ChunkResults / exceptions, one per call."""

    def __init__(self, script=None, on_invoke=None):
        self.script = list(script or [])
        self.calls: list[tuple[str, int]] = []
        self.on_invoke = on_invoke

    def invoke(self, source_url: str, offset: int) -> ChunkResult:
        self.calls.append((source_url, offset))
        if self.on_invoke is not None:
            self.on_invoke(offset)
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    @property
    def offsets(self) -> list[int]:
        return [offset for _, offset in self.calls]


class EndlessImportWorker:
    """Always reports more rows."""

    def __init__(self, page_size: int = 200):
        self.page_size = page_size
        self.calls = 0

    def invoke(self, source_url: str, offset: int) -> ChunkResult:
        self.calls += 1
        return chunk(inserted=self.page_size, next_offset=offset + self.page_size)


class FakeConversionWorker:
    def __init__(self, result=None):
        self.result = result if result is not None else ConversionResult(converted=0, failed=0)
        self.calls: list[str] = []

    def invoke(self, scope_filter: str) -> ConversionResult:
        self.calls.append(scope_filter)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result
