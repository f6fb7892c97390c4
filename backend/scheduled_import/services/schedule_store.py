from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import Session, sessionmaker

from scheduled_import.core.audit import AuditEvent, record_audit_event
from scheduled_import.core.errors import ScheduleConflict, ScheduleNotFound
from scheduled_import.db.session import SessionLocal
from scheduled_import.models.import_schedule import ImportSchedule
from scheduled_import.schemas.schedule import (
    IN_PROGRESS_STATUSES,
    ScheduleState,
    ScheduleStatus,
    ScheduleUpsert,
)
from scheduled_import.services.recurrence import next_occurrence

logger = logging.getLogger(__name__)

_ERROR_MESSAGE_MAX = 2000
_IN_PROGRESS_VALUES = frozenset(status.value for status in IN_PROGRESS_STATUSES)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _column_value(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime) and value.tzinfo is not None:
        # SQLite keeps the wall time only; store instants as UTC everywhere.
        return value.astimezone(timezone.utc)
    return value


class ScheduleStore:
    """
    Durable schedule records.

    Every run-state write is a conditional update on `revision`: it only lands
    if the row is still at the revision the caller read, and bumps it. The
    orchestrator is therefore the exclusive writer for the duration of a run.
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def _load(self, db: Session, schedule_id: str) -> ScheduleState:
        row = db.query(ImportSchedule).filter(ImportSchedule.id == schedule_id).first()
        if not row:
            raise ScheduleNotFound(f"Schedule {schedule_id} not found")
        return ScheduleState.model_validate(row)

    def get(self, schedule_id: str) -> ScheduleState:
        with self._session_factory() as db:
            return self._load(db, schedule_id)

    def get_for_tenant(self, tenant: str) -> Optional[ScheduleState]:
        with self._session_factory() as db:
            row = db.query(ImportSchedule).filter(ImportSchedule.tenant == tenant).first()
            return ScheduleState.model_validate(row) if row else None

    def get_active(self) -> Optional[ScheduleState]:
        """The first enabled schedule, oldest first."""
        with self._session_factory() as db:
            row = (
                db.query(ImportSchedule)
                .filter(ImportSchedule.enabled.is_(True))
                .order_by(ImportSchedule.created_at, ImportSchedule.id)
                .first()
            )
            return ScheduleState.model_validate(row) if row else None

    def save(self, schedule: ScheduleState, **changes) -> ScheduleState:
        """
        Apply `changes` if the row is still at `schedule.revision`.
        Raises ScheduleConflict otherwise. Returns the fresh snapshot.
        """
        now = self.now()
        values = {key: _column_value(value) for key, value in changes.items()}
        if values.get("error_message"):
            values["error_message"] = values["error_message"][:_ERROR_MESSAGE_MAX]
        values["revision"] = schedule.revision + 1
        values["heartbeat_at"] = now
        values["updated_at"] = now

        with self._session_factory() as db:
            updated = (
                db.query(ImportSchedule)
                .filter(ImportSchedule.id == schedule.id)
                .filter(ImportSchedule.revision == schedule.revision)
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                db.rollback()
                raise ScheduleConflict(schedule.id, schedule.revision)
            db.commit()
            fresh = self._load(db, schedule.id)

        if "status" in changes and changes["status"] != schedule.status:
            record_audit_event(
                AuditEvent(
                    action="status_transition",
                    schedule_id=schedule.id,
                    status=_column_value(changes["status"]),
                    detail=f"{schedule.status.value}->{_column_value(changes['status'])}",
                )
            )
        return fresh

    def upsert_config(self, tenant: str, payload: ScheduleUpsert, tz: str = "UTC") -> ScheduleState:
        """
        Administrative create/update of the configuration columns.
        Leaves revision alone so a run in flight is not disturbed; that run
        keeps the source it started with. Changing the source of a schedule
        at rest drops its resume offset.
        """
        next_run_at = next_occurrence(payload.scheduled_time, self.now(), tz) if payload.enabled else None

        with self._session_factory() as db:
            row = db.query(ImportSchedule).filter(ImportSchedule.tenant == tenant).first()
            created = row is None
            if created:
                row = ImportSchedule(
                    tenant=tenant,
                    status=ScheduleStatus.IDLE.value,
                    current_offset=0,
                    revision=0,
                )
                db.add(row)
            elif row.source_url != payload.source_url and row.status not in _IN_PROGRESS_VALUES:
                # A kept resume offset belongs to the old source.
                row.current_offset = 0
                row.total_rows = None
            row.source_url = payload.source_url
            row.enabled = payload.enabled
            row.scheduled_time = payload.scheduled_time
            row.auto_convert_images = payload.auto_convert_images
            row.next_run_at = _column_value(next_run_at)
            db.commit()
            db.refresh(row)
            state = ScheduleState.model_validate(row)

        record_audit_event(
            AuditEvent(
                action="schedule_created" if created else "schedule_updated",
                schedule_id=state.id,
                status=state.status.value,
                detail=f"enabled={state.enabled} time={state.scheduled_time.isoformat()}",
                actor="operator",
            )
        )
        return state

    def reset(self, schedule_id: str) -> ScheduleState:
        """Manual intervention for a schedule stranded in an in-progress status."""
        current = self.get(schedule_id)
        logger.warning(
            "schedule_reset schedule_id=%s status=%s offset=%s",
            current.id,
            current.status.value,
            current.current_offset,
        )
        return self.save(
            current,
            status=ScheduleStatus.IDLE,
            current_offset=0,
            error_message=None,
        )
