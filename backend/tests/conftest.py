import os
import sys
from datetime import time

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENV", "dev")
# no seeding, no trigger token, no real sleeps between chunks
os.environ.setdefault("SEED_ENABLED", "false")
os.environ.setdefault("TRIGGER_TOKEN", "")
os.environ.setdefault("IMPORT_CHUNK_DELAY_SECONDS", "0")

import scheduled_import.models  # noqa: E402,F401
from scheduled_import.db.base import Base  # noqa: E402
from scheduled_import.db.session import SessionLocal, engine  # noqa: E402
from scheduled_import.models.import_schedule import ImportSchedule  # noqa: E402
from scheduled_import.schemas.schedule import ScheduleUpsert  # noqa: E402
from scheduled_import.services.schedule_store import ScheduleStore  # noqa: E402

from main import app  # noqa: E402
from fakes import NOW, SOURCE_URL  # noqa: E402


@pytest.fixture()
def db_schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_schema):
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def store(db_schema):
    return ScheduleStore(SessionLocal, clock=lambda: NOW)


@pytest.fixture()
def make_schedule(store):
    """
    Create the tenant's schedule, then force run-state columns
    (status, current_offset, heartbeat_at, ...) straight into the row.
    """

    def _make(
        *,
        tenant: str = "default",
        enabled: bool = True,
        auto_convert_images: bool = False,
        scheduled_time: time = time(2, 0),
        **run_state,
    ):
        schedule = store.upsert_config(
            tenant,
            ScheduleUpsert(
                source_url=SOURCE_URL,
                enabled=enabled,
                scheduled_time=scheduled_time,
                auto_convert_images=auto_convert_images,
            ),
        )
        if run_state:
            db = SessionLocal()
            try:
                row = db.query(ImportSchedule).filter(ImportSchedule.id == schedule.id).one()
                for key, value in run_state.items():
                    setattr(row, key, value)
                db.commit()
            finally:
                db.close()
        return store.get(schedule.id)

    return _make
