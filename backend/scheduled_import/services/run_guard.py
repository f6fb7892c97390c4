from __future__ import annotations

import logging
from datetime import timedelta

from scheduled_import.core.errors import AlreadyRunning, ScheduleConflict
from scheduled_import.schemas.schedule import ScheduleState, ScheduleStatus
from scheduled_import.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class RunGuard:
    """At most one active execution per schedule."""

    def __init__(self, store: ScheduleStore, stale_after_minutes: int = 0):
        self.store = store
        self.stale_after = timedelta(minutes=stale_after_minutes) if stale_after_minutes > 0 else None

    def is_stale(self, schedule: ScheduleState) -> bool:
        if self.stale_after is None or not schedule.in_progress:
            return False
        last_seen = schedule.heartbeat_at or schedule.last_run_at
        if last_seen is None:
            return True
        return self.store.now() - last_seen > self.stale_after

    def try_acquire(self, schedule: ScheduleState) -> ScheduleState:
        """
        Move `schedule` to `running` in one conditional update.

        Raises AlreadyRunning when another run holds it, including when a
        concurrent trigger wins the race on the same revision.
        """
        if schedule.in_progress:
            if not self.is_stale(schedule):
                raise AlreadyRunning(schedule.id, schedule.status.value)
            logger.warning(
                "reclaiming stale run schedule_id=%s status=%s heartbeat_at=%s",
                schedule.id,
                schedule.status.value,
                schedule.heartbeat_at,
            )

        try:
            return self.store.save(
                schedule,
                status=ScheduleStatus.RUNNING,
                last_run_at=self.store.now(),
                error_message=None,
            )
        except ScheduleConflict as exc:
            current = self.store.get(schedule.id)
            raise AlreadyRunning(schedule.id, current.status.value) from exc
