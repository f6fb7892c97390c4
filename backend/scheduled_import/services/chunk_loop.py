from __future__ import annotations

import logging
import time
from typing import Callable

from scheduled_import.core.errors import (
    ChunkAborted,
    ChunkError,
    ImportProgress,
    MalformedRecord,
    SafetyLimitExceeded,
)
from scheduled_import.schemas.schedule import ScheduleState, ScheduleStatus
from scheduled_import.schemas.worker import ChunkResult
from scheduled_import.services.schedule_store import ScheduleStore
from scheduled_import.services.workers import ImportWorker

logger = logging.getLogger(__name__)


class ChunkLoopController:
    """
    Drives the import worker chunk by chunk from `schedule.current_offset`.

    Progress (offset, total rows) is committed after every chunk, before the
    next one is requested, so a crash loses at most the chunk in flight.
    """

    def __init__(
        self,
        store: ScheduleStore,
        worker: ImportWorker,
        *,
        max_chunks: int = 100,
        delay_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_chunks < 1:
            raise ValueError("max_chunks must be >= 1")
        self.store = store
        self.worker = worker
        self.max_chunks = max_chunks
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def run(
        self, schedule: ScheduleState, source_url: str | None = None
    ) -> tuple[ScheduleState, ImportProgress]:
        """
        Every chunk reads `source_url` (default: the schedule's at entry), even
        if the configured source changes while the loop runs.

        Returns the latest schedule snapshot and the accumulated progress once
        the source reports no more rows.

        Raises ChunkAborted on the first failing chunk and SafetyLimitExceeded
        when `max_chunks` chunks ran without exhausting the source. Neither is
        persisted here; the orchestrator records the terminal state.
        """
        source_url = source_url or schedule.source_url
        offset = schedule.current_offset
        progress = ImportProgress(start_offset=offset, offset=offset, total_rows=schedule.total_rows)

        while progress.chunks < self.max_chunks:
            chunk_index = progress.chunks + 1
            logger.info("import chunk=%s offset=%s schedule_id=%s", chunk_index, offset, schedule.id)
            schedule = self.store.save(schedule, status=ScheduleStatus.IMPORTING, current_offset=offset)

            try:
                result = self.worker.invoke(source_url, offset)
                next_offset = self._next_offset(result, offset)
            except ChunkError as exc:
                logger.error("chunk failed chunk=%s offset=%s kind=%s error=%s", chunk_index, offset, exc.kind, exc)
                raise ChunkAborted(chunk_index, offset, exc, progress, schedule) from exc

            progress.chunks = chunk_index
            progress.inserted += result.records_inserted
            progress.updated += result.records_updated
            if result.total_rows is not None:
                progress.total_rows = result.total_rows
            logger.info(
                "chunk complete chunk=%s inserted=%s updated=%s has_more=%s",
                chunk_index,
                result.records_inserted,
                result.records_updated,
                result.has_more,
            )

            if next_offset is None:
                progress.exhausted = True
                if result.total_rows is not None:
                    schedule = self.store.save(schedule, total_rows=result.total_rows)
                logger.info(
                    "import exhausted chunks=%s inserted=%s updated=%s",
                    progress.chunks,
                    progress.inserted,
                    progress.updated,
                )
                return schedule, progress

            offset = next_offset
            progress.offset = offset
            schedule = self.store.save(schedule, current_offset=offset, total_rows=progress.total_rows)

            if progress.chunks < self.max_chunks and self.delay_seconds > 0:
                self._sleep(self.delay_seconds)

        logger.error("safety limit reached max_chunks=%s offset=%s", self.max_chunks, offset)
        raise SafetyLimitExceeded(self.max_chunks, progress, schedule)

    @staticmethod
    def _next_offset(result: ChunkResult, offset: int) -> int | None:
        if not result.has_more:
            return None
        if result.next_offset is None:
            raise MalformedRecord("Import worker reported more rows without a next offset")
        if result.next_offset <= offset:
            raise MalformedRecord(
                f"Import worker cursor did not advance (offset {offset} -> {result.next_offset})"
            )
        return result.next_offset
