from __future__ import annotations

from dataclasses import dataclass


class ImportOrchestratorError(Exception):
    """Base class for everything the orchestrator raises on purpose."""


class ScheduleNotFound(ImportOrchestratorError):
    pass


class AlreadyRunning(ImportOrchestratorError):
    """Guard rejection. Callers treat it as a no-op, not a failure."""

    def __init__(self, schedule_id: str, status: str):
        super().__init__(f"Import already in progress (schedule={schedule_id} status={status})")
        self.schedule_id = schedule_id
        self.status = status


class ScheduleConflict(ImportOrchestratorError):
    """The schedule revision moved under a writer (another run or an operator reset)."""

    def __init__(self, schedule_id: str, expected_revision: int):
        super().__init__(
            f"Schedule {schedule_id} was modified concurrently (expected revision {expected_revision})"
        )
        self.schedule_id = schedule_id
        self.expected_revision = expected_revision


class ChunkError(ImportOrchestratorError):
    kind = "chunk_error"


class SourceUnreachable(ChunkError):
    kind = "source_unreachable"


class MalformedRecord(ChunkError):
    kind = "malformed_record"


class DestinationWriteError(ChunkError):
    kind = "destination_write"


CHUNK_ERRORS_BY_KIND: dict[str, type[ChunkError]] = {
    cls.kind: cls for cls in (SourceUnreachable, MalformedRecord, DestinationWriteError)
}


@dataclass
class ImportProgress:
    """Run-level accumulators of the import phase."""

    start_offset: int = 0
    offset: int = 0
    chunks: int = 0
    inserted: int = 0
    updated: int = 0
    total_rows: int | None = None
    exhausted: bool = False


class ChunkAborted(ImportOrchestratorError):
    def __init__(self, chunk_index: int, offset: int, cause: ChunkError, progress: ImportProgress, schedule=None):
        super().__init__(f"Import failed at chunk {chunk_index}: {cause}")
        self.chunk_index = chunk_index
        self.offset = offset
        self.cause = cause
        self.progress = progress
        # Latest schedule snapshot seen by the loop.
        self.schedule = schedule


class SafetyLimitExceeded(ImportOrchestratorError):
    kind = "safety_limit"

    def __init__(self, max_chunks: int, progress: ImportProgress, schedule=None):
        super().__init__(f"Import stopped after {max_chunks} chunks (safety limit)")
        self.max_chunks = max_chunks
        self.progress = progress
        self.schedule = schedule


class ConversionDegraded(ImportOrchestratorError):
    """Conversion worker failed or timed out. Recorded in the report only."""

    kind = "conversion_degraded"
