from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker

from scheduled_import.core.config import settings

engine_kwargs: dict = {"pool_pre_ping": True}
connect_args: dict = {}

url = make_url(settings.DATABASE_URL)
if url.get_backend_name() in {"postgresql", "postgres"}:
    # psycopg2/libpq option flag
    connect_args.setdefault("options", "-c client_encoding=UTF8")

if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {**connect_args, "check_same_thread": False}
    if ":memory:" in settings.DATABASE_URL:
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, **engine_kwargs)

# expire_on_commit=False: schedule snapshots are read after the session commits.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
