from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scheduled_import.api.v1.api import api_router
from scheduled_import.core.config import settings
from scheduled_import.core.logging import configure_logging
from scheduled_import.core.seed import ensure_seed_schedule

configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_seed_schedule()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/v1/worker/health")
def worker_health():
    return {
        "status": "ok",
        "import_worker": settings.IMPORT_WORKER_URL,
        "conversion_worker": settings.CONVERSION_WORKER_URL,
    }
