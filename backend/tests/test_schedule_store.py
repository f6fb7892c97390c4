import pytest

from fakes import SOURCE_URL
from scheduled_import.core.errors import ScheduleConflict
from scheduled_import.schemas.schedule import ScheduleStatus, ScheduleUpsert

OTHER_SOURCE_URL = "https://other.example.com/other.csv"


def _upsert(store, source_url=SOURCE_URL):
    return store.upsert_config("default", ScheduleUpsert(source_url=source_url, enabled=True))


@pytest.mark.parametrize("status", ["failed", "completed", "idle"])
def test_new_source_drops_resume_offset(store, make_schedule, status):
    make_schedule(status=status, current_offset=400, total_rows=1250)

    updated = _upsert(store, OTHER_SOURCE_URL)

    assert updated.source_url == OTHER_SOURCE_URL
    assert updated.current_offset == 0
    assert updated.total_rows is None


def test_same_source_keeps_resume_offset(store, make_schedule):
    schedule = make_schedule(status="failed", current_offset=400)

    updated = _upsert(store)

    assert updated.current_offset == 400
    assert updated.revision == schedule.revision


def test_new_source_while_running_leaves_run_state(store, make_schedule):
    schedule = make_schedule(status="importing", current_offset=400)

    updated = _upsert(store, OTHER_SOURCE_URL)

    assert updated.source_url == OTHER_SOURCE_URL
    assert updated.current_offset == 400
    assert updated.status == ScheduleStatus.IMPORTING
    assert updated.revision == schedule.revision


def test_save_on_stale_revision_conflicts(store, make_schedule):
    schedule = make_schedule()
    store.save(schedule, status=ScheduleStatus.RUNNING)

    with pytest.raises(ScheduleConflict):
        store.save(schedule, status=ScheduleStatus.IMPORTING)
