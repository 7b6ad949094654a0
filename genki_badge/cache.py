"""Stale-while-revalidate cache in front of the commit aggregator."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable

from .aggregator import CommitAggregator
from .config import ScoreSettings, UTC
from .filters import is_bot_account
from .freshness import should_refresh
from .models import Snapshot
from .scoring import classify_health
from .store import SnapshotStore, cache_key

LOGGER = logging.getLogger(__name__)

BackgroundJob = Callable[[], Awaitable[None]]
Scheduler = Callable[[BackgroundJob], None]


class BadgeServiceError(RuntimeError):
    """Base class for errors that reject a badge request."""


class ConfigurationError(BadgeServiceError):
    """Raised when no monitored identity is configured."""


class IdentityRejectedError(BadgeServiceError):
    """Raised when the monitored identity looks like an automation account."""


class TaskScheduler:
    """Runs background jobs as asyncio tasks and keeps them referenced until done."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def __call__(self, job: BackgroundJob) -> None:
        task = asyncio.ensure_future(job())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled job, including ones scheduled while waiting."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class CacheController:
    """Serves snapshots from the store and decides when to recompute them."""

    def __init__(
        self,
        settings: ScoreSettings,
        store: SnapshotStore,
        aggregator: CommitAggregator,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._aggregator = aggregator
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def resolve(self, schedule: Scheduler) -> Snapshot:
        """Return the snapshot to serve for the monitored identity.

        A cached snapshot is always returned as is; when it is stale a refresh
        is handed to ``schedule`` and runs after the caller has its answer.
        Without a cached snapshot the aggregation runs inline.
        """

        username = self._require_username()
        cached = await self._store.get(cache_key(username))
        if cached is None:
            if is_bot_account(username):
                raise IdentityRejectedError("Bot users are not supported")
            LOGGER.info("No snapshot cached for %s; computing", username)
            return await self.refresh()

        if should_refresh(cached.last_updated, self._settings.refresh_hour, self._clock()):
            LOGGER.info("Snapshot for %s from %s is stale; scheduling refresh", username, cached.last_updated)
            schedule(self.refresh_in_background)
        return cached

    async def refresh(self) -> Snapshot:
        """Run an aggregation and overwrite the stored snapshot."""

        username = self._require_username()
        result = await self._aggregator.aggregate(username)
        snapshot = Snapshot(
            commits=result.commits,
            status=classify_health(
                result.commits,
                self._settings.healthy_threshold,
                self._settings.moderate_threshold,
            ),
            last_updated=self._clock(),
            owned_repositories=result.owned_repositories,
            org_repositories=result.org_repositories,
        )
        await self._store.put(cache_key(username), snapshot, self._settings.cache_ttl)
        return snapshot

    async def refresh_in_background(self) -> None:
        """Refresh the snapshot, logging failures instead of raising them."""

        username = self._settings.username
        if not username or is_bot_account(username):
            LOGGER.error("Skipping background refresh: monitored identity %r is not supported", username)
            return
        try:
            await self.refresh()
        except Exception:
            LOGGER.exception("Background cache update failed for %s", username)
            return
        LOGGER.info("Cache updated successfully for %s", username)

    def _require_username(self) -> str:
        if not self._settings.username:
            raise ConfigurationError("GITHUB_USERNAME not configured")
        return self._settings.username


__all__ = [
    "BadgeServiceError",
    "CacheController",
    "ConfigurationError",
    "IdentityRejectedError",
    "Scheduler",
    "TaskScheduler",
]
