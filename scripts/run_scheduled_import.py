"""
Cron entry point for the scheduled import.

Runs the orchestrator in-process against the configured database and
workers, prints the run report as JSON and exits non-zero on failure.

Example crontab entries:
    0 2 * * *    python scripts/run_scheduled_import.py
    */15 * * * * python scripts/run_scheduled_import.py --if-due
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1] / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from scheduled_import.core.config import settings  # noqa: E402
from scheduled_import.core.errors import ImportOrchestratorError  # noqa: E402
from scheduled_import.core.logging import configure_logging  # noqa: E402
from scheduled_import.services.orchestrator import build_orchestrator  # noqa: E402
from scheduled_import.services.schedule_store import ScheduleStore  # noqa: E402


def _reset(tenant: str) -> int:
    store = ScheduleStore()
    schedule = store.get_for_tenant(tenant)
    if not schedule:
        print(json.dumps({"status": "failed", "error": f"no schedule for tenant {tenant}"}))
        return 2
    try:
        schedule = store.reset(schedule.id)
    except ImportOrchestratorError as exc:
        print(json.dumps({"status": "failed", "error": str(exc)}))
        return 1
    print(schedule.model_dump_json(indent=2))
    return 0


def _is_due(store: ScheduleStore) -> bool:
    schedule = store.get_active()
    if schedule is None or schedule.next_run_at is None:
        return True
    return schedule.next_run_at <= store.now()


def _run(if_due: bool) -> int:
    store = ScheduleStore()
    if if_due and not _is_due(store):
        print(json.dumps({"status": "skipped", "message": "Not due yet"}))
        return 0

    orchestrator = build_orchestrator(store)
    try:
        report = orchestrator.run_now()
    except Exception as exc:
        print(json.dumps({"status": "failed", "error": str(exc)}))
        return 1
    finally:
        orchestrator.close()

    print(report.model_dump_json(indent=2))
    return 1 if report.status == "failed" else 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the scheduled import now")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Reset a schedule stuck in running/importing/converting instead of running",
    )
    parser.add_argument(
        "--if-due",
        action="store_true",
        help="Only run when the active schedule's next_run_at has passed",
    )
    parser.add_argument("--tenant", default=settings.DEFAULT_TENANT, help="Tenant to reset")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    args = parser.parse_args(argv)

    configure_logging(args.log_level.upper())
    if args.reset:
        return _reset(args.tenant)
    return _run(args.if_due)


if __name__ == "__main__":
    sys.exit(main())
