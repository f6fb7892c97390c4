from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from scheduled_import.core.config import settings
from scheduled_import.core.errors import ScheduleConflict
from scheduled_import.core.security import require_trigger_token
from scheduled_import.schemas.run import RunFailure, RunReport
from scheduled_import.schemas.schedule import ScheduleState, ScheduleUpsert
from scheduled_import.services.orchestrator import ImportOrchestrator, build_orchestrator
from scheduled_import.services.schedule_store import ScheduleStore


router = APIRouter()


def get_store() -> ScheduleStore:
    return ScheduleStore()


def get_orchestrator():
    orchestrator = build_orchestrator()
    try:
        yield orchestrator
    finally:
        orchestrator.close()


def _require_schedule(store: ScheduleStore, tenant: str) -> ScheduleState:
    schedule = store.get_for_tenant(tenant)
    if not schedule:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import schedule not found")
    return schedule


@router.get("", response_model=ScheduleState)
def read_schedule(
    tenant: str = Query(default=settings.DEFAULT_TENANT),
    store: ScheduleStore = Depends(get_store),
) -> ScheduleState:
    return _require_schedule(store, tenant)


@router.put("", response_model=ScheduleState)
def upsert_schedule(
    payload: ScheduleUpsert,
    tenant: str = Query(default=settings.DEFAULT_TENANT),
    store: ScheduleStore = Depends(get_store),
    _auth=Depends(require_trigger_token),
) -> ScheduleState:
    return store.upsert_config(tenant, payload, tz=settings.SCHEDULE_TIMEZONE)


@router.post("/run", response_model=RunReport, responses={500: {"model": RunFailure}})
def run_now(
    orchestrator: ImportOrchestrator = Depends(get_orchestrator),
    _auth=Depends(require_trigger_token),
):
    try:
        report = orchestrator.run_now()
    except Exception as exc:
        # Already logged and recorded on the schedule by the orchestrator.
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=RunFailure(error=str(exc)).model_dump(),
        )

    if report.status == "failed":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=report.model_dump(mode="json"),
        )
    return report


@router.post("/reset", response_model=ScheduleState)
def reset_schedule(
    tenant: str = Query(default=settings.DEFAULT_TENANT),
    store: ScheduleStore = Depends(get_store),
    _auth=Depends(require_trigger_token),
) -> ScheduleState:
    schedule = _require_schedule(store, tenant)
    try:
        return store.reset(schedule.id)
    except ScheduleConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
