from __future__ import annotations

import logging

from sqlalchemy.exc import OperationalError, ProgrammingError

from scheduled_import.core.config import settings
from scheduled_import.schemas.schedule import ScheduleUpsert
from scheduled_import.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


def ensure_seed_schedule(store: ScheduleStore | None = None) -> None:
    """
    Idempotent seed for DEV when SEED_ENABLED=true and SEED_SOURCE_URL is set.
    Creates the tenant's schedule disabled; an operator enables it.
    """
    if not settings.SEED_ENABLED or not settings.SEED_SOURCE_URL:
        return

    store = store or ScheduleStore()
    try:
        if store.get_for_tenant(settings.DEFAULT_TENANT):
            return
    except (OperationalError, ProgrammingError):
        # Tables not migrated yet.
        logger.warning("seed skipped: import_schedules table not available")
        return

    store.upsert_config(
        settings.DEFAULT_TENANT,
        ScheduleUpsert(
            source_url=settings.SEED_SOURCE_URL,
            enabled=False,
            scheduled_time=settings.SEED_SCHEDULED_TIME,
            auto_convert_images=False,
        ),
        tz=settings.SCHEDULE_TIMEZONE,
    )
    logger.info("seeded import schedule tenant=%s", settings.DEFAULT_TENANT)
