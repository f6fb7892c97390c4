import logging.config
from typing import Optional

# Worker HTTP chatter and SQL echo stay out of run logs unless asked for.
QUIET_LOGGERS = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "sqlalchemy.engine": "WARNING",
}
SERVICE_LOGGERS = ("scheduled_import", "alembic", "uvicorn", "uvicorn.error", "uvicorn.access")


def build_logging_config(level: str = "INFO", quiet: Optional[dict] = None) -> dict:
    level = level.upper()
    loggers = {name: {"level": level, "handlers": ["console"], "propagate": False} for name in SERVICE_LOGGERS}
    for name, quiet_level in (QUIET_LOGGERS if quiet is None else quiet).items():
        loggers[name] = {"level": quiet_level, "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "run": {
                "format": "%(asctime)s level=%(levelname)s logger=%(name)s %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "run",
                "stream": "ext://sys.stderr",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": loggers,
    }


def configure_logging(level: str = "INFO") -> None:
    """Stderr logging for the API and the cron script; stdout is kept for the JSON report."""
    logging.config.dictConfig(build_logging_config(level))
