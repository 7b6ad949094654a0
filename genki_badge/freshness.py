"""Daily refresh policy for cached snapshots."""

from __future__ import annotations

from datetime import datetime, timedelta

from .config import JST, UTC

MAX_SNAPSHOT_AGE = timedelta(hours=24)


def should_refresh(last_updated: datetime, refresh_hour: int, now: datetime | None = None) -> bool:
    """Return ``True`` when a snapshot taken at ``last_updated`` must be replaced.

    Snapshots are refreshed once per JST calendar day, no earlier than
    ``refresh_hour``. Anything older than 24 hours is stale regardless of the
    hour, which covers snapshots taken after ``refresh_hour`` on their own day.
    """

    now = now or datetime.now(tz=UTC)
    if now - last_updated > MAX_SNAPSHOT_AGE:
        return True

    local_now = now.astimezone(JST)
    local_last = last_updated.astimezone(JST)
    return local_now.date() != local_last.date() and local_now.hour >= refresh_hour


__all__ = ["MAX_SNAPSHOT_AGE", "should_refresh"]
