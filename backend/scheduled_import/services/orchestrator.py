from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from scheduled_import.core.config import settings
from scheduled_import.core.errors import (
    AlreadyRunning,
    ChunkAborted,
    ConversionDegraded,
    ImportProgress,
    SafetyLimitExceeded,
    ScheduleConflict,
)
from scheduled_import.schemas.run import ConversionSummary, RunReport
from scheduled_import.schemas.schedule import ScheduleState, ScheduleStatus
from scheduled_import.services.chunk_loop import ChunkLoopController
from scheduled_import.services.recurrence import next_occurrence
from scheduled_import.services.run_guard import RunGuard
from scheduled_import.services.schedule_store import ScheduleStore
from scheduled_import.services.workers import (
    ConversionWorker,
    ImportWorker,
    build_conversion_worker,
    build_import_worker,
)

logger = logging.getLogger(__name__)


def _report_from_progress(status: str, schedule: ScheduleState, progress: ImportProgress, **extra) -> RunReport:
    return RunReport(
        status=status,
        schedule_id=schedule.id,
        chunks_processed=progress.chunks,
        records_inserted=progress.inserted,
        records_updated=progress.updated,
        start_offset=progress.start_offset,
        total_rows=progress.total_rows,
        **extra,
    )


class ImportOrchestrator:
    """
    One "run now" of the active schedule:

        idle|completed|failed -> running -> importing -> [converting] -> completed
                                                      \\-> failed

    Conversion runs only when the import exhausted the source and the
    schedule has `auto_convert_images`. Its failures never fail the run.
    """

    def __init__(
        self,
        store: ScheduleStore,
        import_worker: ImportWorker,
        conversion_worker: ConversionWorker,
        *,
        max_chunks: int = 100,
        delay_seconds: float = 2.0,
        resume_on_failure: bool = True,
        conversion_scope: str = "all",
        timezone_name: str = "UTC",
        stale_after_minutes: int = 0,
        sleep=None,
    ):
        self.store = store
        self.guard = RunGuard(store, stale_after_minutes=stale_after_minutes)
        loop_kwargs = {"max_chunks": max_chunks, "delay_seconds": delay_seconds}
        if sleep is not None:
            loop_kwargs["sleep"] = sleep
        self.chunk_loop = ChunkLoopController(store, import_worker, **loop_kwargs)
        self.conversion_worker = conversion_worker
        self.resume_on_failure = resume_on_failure
        self.conversion_scope = conversion_scope
        self.timezone_name = timezone_name

    def close(self) -> None:
        for worker in (self.chunk_loop.worker, self.conversion_worker):
            close = getattr(worker, "close", None)
            if close is not None:
                close()

    def next_run_at(self, schedule: ScheduleState) -> datetime:
        return next_occurrence(schedule.scheduled_time, self.store.now(), self.timezone_name)

    def run_now(self) -> RunReport:
        schedule = self.store.get_active()
        if schedule is None:
            logger.info("no enabled schedules")
            return RunReport(status="skipped", message="No enabled schedules")

        logger.info("found schedule schedule_id=%s status=%s", schedule.id, schedule.status.value)
        try:
            schedule = self.guard.try_acquire(schedule)
        except AlreadyRunning as exc:
            logger.warning("import already running, skipping schedule_id=%s", schedule.id)
            return RunReport(status="skipped", schedule_id=schedule.id, message=str(exc))

        try:
            return self._run(schedule)
        except ScheduleConflict as exc:
            logger.error("run abandoned, schedule changed underneath: %s", exc)
            return RunReport(status="failed", schedule_id=schedule.id, error=str(exc), error_kind="conflict")
        except Exception as exc:
            logger.exception("scheduled import failed schedule_id=%s", schedule.id)
            self._mark_failed_best_effort(schedule.id, str(exc))
            raise

    def _run(self, schedule: ScheduleState) -> RunReport:
        # Configuration is pinned at acquire; edits apply from the next run.
        source_url = schedule.source_url
        auto_convert_images = schedule.auto_convert_images
        logger.info(
            "starting import schedule_id=%s offset=%s source_url=%s",
            schedule.id,
            schedule.current_offset,
            source_url,
        )
        try:
            schedule, progress = self.chunk_loop.run(schedule, source_url)
        except ChunkAborted as exc:
            return self._fail_chunk(exc, source_url)
        except SafetyLimitExceeded as exc:
            return self._fail_safety_limit(exc)

        conversion: Optional[ConversionSummary] = None
        if progress.exhausted and auto_convert_images:
            schedule = self.store.save(schedule, status=ScheduleStatus.CONVERTING)
            conversion = self._convert()

        next_run_at = self.next_run_at(schedule)
        schedule = self.store.save(
            schedule,
            status=ScheduleStatus.COMPLETED,
            current_offset=0,
            next_run_at=next_run_at,
        )
        logger.info(
            "scheduled import completed schedule_id=%s chunks=%s inserted=%s updated=%s next_run_at=%s",
            schedule.id,
            progress.chunks,
            progress.inserted,
            progress.updated,
            next_run_at.isoformat(),
        )
        return _report_from_progress(
            "completed",
            schedule,
            progress,
            final_offset=0,
            conversion=conversion,
            next_run_at=next_run_at,
        )

    def _convert(self) -> ConversionSummary:
        logger.info("starting image conversion scope=%s", self.conversion_scope)
        try:
            result = self.conversion_worker.invoke(self.conversion_scope)
        except ConversionDegraded as exc:
            logger.error("image conversion failed: %s", exc)
            return ConversionSummary(ran=True, error=str(exc), errors=[str(exc)])

        if result.failed:
            logger.warning(
                "image conversion degraded converted=%s failed=%s", result.converted, result.failed
            )
        else:
            logger.info("image conversion complete converted=%s", result.converted)
        return ConversionSummary(
            ran=True,
            converted=result.converted,
            failed=result.failed,
            errors=result.errors,
        )

    def _fail_chunk(self, exc: ChunkAborted, source_url: str) -> RunReport:
        schedule = exc.schedule
        resumable = self.resume_on_failure and schedule.source_url == source_url
        if self.resume_on_failure and not resumable:
            logger.info("source changed during the run, next run starts at offset 0 schedule_id=%s", schedule.id)
        final_offset = exc.offset if resumable else 0
        next_run_at = self.next_run_at(schedule)
        schedule = self.store.save(
            schedule,
            status=ScheduleStatus.FAILED,
            error_message=str(exc),
            current_offset=final_offset,
            next_run_at=next_run_at,
        )
        return _report_from_progress(
            "failed",
            schedule,
            exc.progress,
            final_offset=final_offset,
            next_run_at=next_run_at,
            error=str(exc),
            error_kind=exc.cause.kind,
        )

    def _fail_safety_limit(self, exc: SafetyLimitExceeded) -> RunReport:
        schedule = exc.schedule
        next_run_at = self.next_run_at(schedule)
        schedule = self.store.save(
            schedule,
            status=ScheduleStatus.FAILED,
            error_message=str(exc),
            current_offset=0,
            next_run_at=next_run_at,
        )
        return _report_from_progress(
            "failed",
            schedule,
            exc.progress,
            final_offset=0,
            next_run_at=next_run_at,
            error=str(exc),
            error_kind=exc.kind,
        )

    def _mark_failed_best_effort(self, schedule_id: str, message: str) -> None:
        try:
            current = self.store.get(schedule_id)
            self.store.save(
                current,
                status=ScheduleStatus.FAILED,
                error_message=message,
                current_offset=0,
                next_run_at=self.next_run_at(current),
            )
        except Exception:
            logger.exception("failed to record failure on schedule_id=%s", schedule_id)


def build_orchestrator(store: Optional[ScheduleStore] = None) -> ImportOrchestrator:
    return ImportOrchestrator(
        store or ScheduleStore(),
        build_import_worker(),
        build_conversion_worker(),
        max_chunks=settings.IMPORT_MAX_CHUNKS,
        delay_seconds=settings.IMPORT_CHUNK_DELAY_SECONDS,
        resume_on_failure=settings.IMPORT_RESUME_ON_FAILURE,
        conversion_scope=settings.CONVERSION_SCOPE,
        timezone_name=settings.SCHEDULE_TIMEZONE,
        stale_after_minutes=settings.STALE_RUN_TIMEOUT_MINUTES,
    )
