import pytest

from fakes import EndlessImportWorker, FakeImportWorker, SOURCE_URL, chunk
from scheduled_import.core.errors import (
    ChunkAborted,
    DestinationWriteError,
    MalformedRecord,
    SafetyLimitExceeded,
    SourceUnreachable,
)
from scheduled_import.schemas.schedule import ScheduleStatus
from scheduled_import.services.chunk_loop import ChunkLoopController


def _loop(store, worker, sleeps=None, **kwargs):
    sleeps = sleeps if sleeps is not None else []
    kwargs.setdefault("delay_seconds", 2.0)
    return ChunkLoopController(store, worker, sleep=sleeps.append, **kwargs)


def test_exhausted_on_first_call_invokes_once(store, make_schedule):
    schedule = make_schedule(status="running")
    worker = FakeImportWorker([chunk(inserted=50, total_rows=50)])
    sleeps = []

    schedule, progress = _loop(store, worker, sleeps).run(schedule)

    assert worker.calls == [(SOURCE_URL, 0)]
    assert progress.exhausted is True
    assert progress.chunks == 1
    assert progress.inserted == 50
    assert sleeps == []
    assert schedule.status == ScheduleStatus.IMPORTING
    assert store.get(schedule.id).total_rows == 50


def test_chunks_follow_returned_offsets(store, make_schedule):
    schedule = make_schedule(status="running")
    worker = FakeImportWorker(
        [
            chunk(inserted=150, updated=50, next_offset=200, total_rows=450),
            chunk(inserted=200, next_offset=400, total_rows=450),
            chunk(inserted=30, updated=20, total_rows=450),
        ]
    )
    sleeps = []

    schedule, progress = _loop(store, worker, sleeps).run(schedule)

    assert worker.offsets == [0, 200, 400]
    assert (progress.chunks, progress.inserted, progress.updated) == (3, 380, 70)
    assert progress.total_rows == 450
    assert sleeps == [2.0, 2.0]
    persisted = store.get(schedule.id)
    assert persisted.current_offset == 400
    assert persisted.total_rows == 450


def test_resumes_from_persisted_offset(store, make_schedule):
    schedule = make_schedule(status="running", current_offset=400)
    worker = FakeImportWorker([chunk(inserted=50)])

    _, progress = _loop(store, worker).run(schedule)

    assert worker.offsets == [400]
    assert progress.start_offset == 400


def test_failure_keeps_last_checkpoint(store, make_schedule):
    schedule = make_schedule(status="running")
    worker = FakeImportWorker(
        [
            chunk(inserted=200, next_offset=200),
            chunk(inserted=200, next_offset=400),
            SourceUnreachable("HTTP 503: upstream unavailable"),
        ]
    )

    with pytest.raises(ChunkAborted) as excinfo:
        _loop(store, worker).run(schedule)

    aborted = excinfo.value
    assert aborted.chunk_index == 3
    assert aborted.offset == 400
    assert isinstance(aborted.cause, SourceUnreachable)
    assert aborted.progress.chunks == 2
    assert aborted.progress.inserted == 400
    assert str(aborted) == "Import failed at chunk 3: HTTP 503: upstream unavailable"
    # Chunk 2's next_offset was committed before chunk 3 was requested.
    assert store.get(schedule.id).current_offset == 400
    assert aborted.schedule.revision == store.get(schedule.id).revision


def test_no_retry_inside_the_loop(store, make_schedule):
    schedule = make_schedule(status="running")
    worker = FakeImportWorker([DestinationWriteError("HTTP 500: insert failed"), chunk()])

    with pytest.raises(ChunkAborted):
        _loop(store, worker).run(schedule)

    assert len(worker.calls) == 1


def test_safety_limit_stops_after_max_chunks(store, make_schedule):
    schedule = make_schedule(status="running")
    worker = EndlessImportWorker(page_size=200)
    sleeps = []

    with pytest.raises(SafetyLimitExceeded) as excinfo:
        _loop(store, worker, sleeps, max_chunks=5).run(schedule)

    assert worker.calls == 5
    assert excinfo.value.progress.chunks == 5
    assert len(sleeps) == 4
    assert str(excinfo.value) == "Import stopped after 5 chunks (safety limit)"


def test_more_rows_without_next_offset_is_malformed(store, make_schedule):
    schedule = make_schedule(status="running")
    bad = chunk(inserted=10)
    bad = bad.model_copy(update={"has_more": True})
    worker = FakeImportWorker([bad])

    with pytest.raises(ChunkAborted) as excinfo:
        _loop(store, worker).run(schedule)

    assert isinstance(excinfo.value.cause, MalformedRecord)


def test_cursor_that_does_not_advance_is_malformed(store, make_schedule):
    schedule = make_schedule(status="running", current_offset=200)
    worker = FakeImportWorker([chunk(inserted=10, next_offset=200)])

    with pytest.raises(ChunkAborted) as excinfo:
        _loop(store, worker).run(schedule)

    assert isinstance(excinfo.value.cause, MalformedRecord)
    assert "did not advance" in str(excinfo.value)


def test_max_chunks_must_be_positive(store):
    with pytest.raises(ValueError):
        ChunkLoopController(store, FakeImportWorker(), max_chunks=0)


def test_pinned_source_url_is_used_for_every_chunk(store, make_schedule):
    schedule = make_schedule(status="running")
    worker = FakeImportWorker([chunk(inserted=200, next_offset=200), chunk(inserted=5)])

    _loop(store, worker).run(schedule, "https://pinned.example.com/games.csv")

    assert worker.calls == [
        ("https://pinned.example.com/games.csv", 0),
        ("https://pinned.example.com/games.csv", 200),
    ]
