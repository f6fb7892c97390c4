from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def next_occurrence(time_of_day: time, now: datetime, tz: str = "UTC") -> datetime:
    """
    Next wall-clock time matching `time_of_day` in `tz`, strictly after `now`.

    Naive `now` is taken as UTC. The result is timezone-aware (in `tz`).
    """
    zone = ZoneInfo(tz)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_now = now.astimezone(zone)
    wall = time_of_day.replace(tzinfo=None)

    day = local_now.date()
    while True:
        candidate = datetime.combine(day, wall, tzinfo=zone)
        # Round-trip through UTC so a wall time skipped by a DST jump lands on a real instant.
        candidate = candidate.astimezone(timezone.utc).astimezone(zone)
        if candidate > local_now:
            return candidate
        day += timedelta(days=1)
