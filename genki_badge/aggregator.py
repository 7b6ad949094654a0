"""High level orchestration for counting a user's recent commits."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

import httpx

from .config import ScoreSettings, UTC
from .filters import should_count_commit
from .github_client import GitHubClientError, GitHubRestClient
from .models import AggregationResult, RepositoryRecord

LOGGER = logging.getLogger(__name__)

# Upper bound on commit-history queries per run, across owned and organization repositories.
MAX_REPOSITORIES = 20
OWNED_FETCH_LIMIT = 30
COMMITS_PAGE_SIZE = 100

AUTHENTICATED_BATCH_SIZE = 5
ANONYMOUS_BATCH_SIZE = 3
AUTHENTICATED_BATCH_PAUSE = 0.1
ANONYMOUS_BATCH_PAUSE = 0.2


@dataclass(slots=True)
class PassOutcome:
    commits: int = 0
    contributing: int = 0
    queried: int = 0


class CommitAggregator:
    """Counts qualifying commits across a user's repositories in batches."""

    def __init__(
        self,
        settings: ScoreSettings,
        client: GitHubRestClient,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    @property
    def batch_size(self) -> int:
        return AUTHENTICATED_BATCH_SIZE if self._client.authenticated else ANONYMOUS_BATCH_SIZE

    @property
    def batch_pause(self) -> float:
        return AUTHENTICATED_BATCH_PAUSE if self._client.authenticated else ANONYMOUS_BATCH_PAUSE

    async def aggregate(self, username: str) -> AggregationResult:
        """Count commits by ``username`` within the monitoring window."""

        since = self._clock() - timedelta(days=self._settings.monitoring_days)
        LOGGER.info("Aggregating commits for %s since %s", username, since.isoformat())

        owned = await self._owned_pass(username, since)
        org = PassOutcome()
        # Contributing repositories never outnumber queried ones, so the query
        # budget also keeps the combined contributing count within the cap.
        query_budget = MAX_REPOSITORIES - owned.queried
        if self._settings.include_org_repos and query_budget > 0:
            org = await self._organization_pass(username, since, query_budget=query_budget)

        result = AggregationResult(
            commits=owned.commits + org.commits,
            owned_repositories=owned.contributing,
            org_repositories=org.contributing,
        )
        LOGGER.info(
            "Aggregated %s commits for %s (owned repos: %s, org repos: %s, queried: %s)",
            result.commits,
            username,
            result.owned_repositories,
            result.org_repositories,
            owned.queried + org.queried,
        )
        return result

    async def count_repository_commits(self, username: str, owner: str, repository: str, since: datetime) -> int:
        """Qualifying commits by ``username`` in one repository; zero on any failure."""

        try:
            commits = await self._client.list_commits(owner, repository, username, since, per_page=COMMITS_PAGE_SIZE)
        except (GitHubClientError, httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("Error fetching commits for %s/%s: %s", owner, repository, exc)
            return 0
        return sum(1 for commit in commits if should_count_commit(commit, username))

    async def _owned_pass(self, username: str, since: datetime) -> PassOutcome:
        repositories = await self._client.list_owned_repositories(username, per_page=OWNED_FETCH_LIMIT)
        candidates = [
            (username, repository.name)
            for repository in repositories
            if self._is_candidate(repository, since)
        ][:MAX_REPOSITORIES]
        return await self._count_in_batches(username, since, candidates)

    async def _organization_pass(
        self,
        username: str,
        since: datetime,
        *,
        query_budget: int,
    ) -> PassOutcome:
        try:
            organizations = await self._client.list_organizations(username)
        except GitHubClientError as exc:
            LOGGER.warning("Failed to fetch organizations for %s: %s", username, exc)
            return PassOutcome()

        excluded = set(self._settings.exclude_orgs)
        organizations = [org for org in organizations if org.login not in excluded]
        listings = await asyncio.gather(*(self._list_organization_repositories(org.login) for org in organizations))

        candidates: list[tuple[str, str]] = []
        for org, repositories in zip(organizations, listings):
            for repository in repositories:
                if len(candidates) >= query_budget:
                    break
                if self._is_candidate(repository, since):
                    candidates.append((org.login, repository.name))
        return await self._count_in_batches(username, since, candidates)

    async def _list_organization_repositories(self, org: str) -> list[RepositoryRecord]:
        try:
            return await self._client.list_organization_repositories(org, per_page=self._settings.max_repos_per_org)
        except GitHubClientError as exc:
            LOGGER.warning("Error fetching repositories for org %s: %s", org, exc)
            return []

    async def _count_in_batches(
        self,
        username: str,
        since: datetime,
        candidates: list[tuple[str, str]],
    ) -> PassOutcome:
        outcome = PassOutcome()
        size = self.batch_size
        for start in range(0, len(candidates), size):
            batch = candidates[start : start + size]
            counts = await asyncio.gather(
                *(self.count_repository_commits(username, owner, name, since) for owner, name in batch)
            )
            outcome.queried += len(batch)
            for count in counts:
                if count > 0:
                    outcome.commits += count
                    outcome.contributing += 1
            if start + size < len(candidates):
                await asyncio.sleep(self.batch_pause)
        return outcome

    def _is_candidate(self, repository: RepositoryRecord, since: datetime) -> bool:
        # A repository untouched since before the window cannot hold in-window commits.
        if repository.name in self._settings.exclude_repos:
            return False
        return repository.updated_at >= since


__all__ = ["CommitAggregator", "MAX_REPOSITORIES", "PassOutcome"]
