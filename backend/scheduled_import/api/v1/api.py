from fastapi import APIRouter

from scheduled_import.api.v1.endpoints import schedule

api_router = APIRouter()

api_router.include_router(schedule.router, prefix="/import-schedule", tags=["import-schedule"])
