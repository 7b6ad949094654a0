"""HTTP client for GitHub's REST API with retry and rate-limit handling."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, TypeVar
from urllib.parse import quote

import httpx

from .config import GitHubSettings, UTC
from .models import CommitRecord, OrganizationRecord, RepositoryRecord

LOGGER = logging.getLogger(__name__)

USER_AGENT = "am-i-genki-badge"
RATE_LIMIT_STATUSES = frozenset({403, 429})
MAX_BACKOFF_EXPONENT = 6

T = TypeVar("T")


class GitHubClientError(RuntimeError):
    """Raised when a GitHub request fails permanently."""


def backoff_delay(initial_backoff: float, attempt: int) -> float:
    """Exponential backoff ``initial * 2**attempt`` with the exponent clamped."""

    exponent = min(max(attempt, 0), MAX_BACKOFF_EXPONENT)
    return initial_backoff * (1 << exponent)


class GitHubRestClient:
    """Light-weight REST client with retry and backoff support.

    The client performs no concurrency control of its own; callers bound the
    number of in-flight requests.
    """

    def __init__(self, settings: GitHubSettings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._endpoint = settings.api_url.rstrip("/")
        self._headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        if settings.token:
            self._headers["Authorization"] = f"Bearer {settings.token}"
        self._client = client or httpx.AsyncClient(
            timeout=settings.request_timeout,
            follow_redirects=True,
        )
        self._owns_client = client is None

    @property
    def authenticated(self) -> bool:
        return bool(self._settings.token)

    async def __aenter__(self) -> "GitHubRestClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        max_retries: int | None = None,
        initial_backoff: float | None = None,
    ) -> httpx.Response:
        """Issue a GET request, retrying rate limits, server errors and network failures.

        Any other status code is handed back untouched for the caller to
        interpret.
        """

        attempts = max_retries if max_retries is not None else self._settings.max_retries
        base_delay = initial_backoff if initial_backoff is not None else self._settings.initial_backoff
        url = f"{self._endpoint}{path}"
        last_error: Exception | None = None

        for attempt in range(attempts):
            has_next = attempt + 1 < attempts
            try:
                response = await self._client.get(url, params=params, headers=self._headers)
            except httpx.RequestError as exc:
                last_error = exc
                delay = backoff_delay(base_delay, attempt)
                LOGGER.warning("GitHub request error for %s: %s", path, exc)
                if has_next:
                    await asyncio.sleep(delay)
                continue

            if response.status_code in RATE_LIMIT_STATUSES:
                delay = _retry_after_seconds(response)
                if delay is None:
                    delay = backoff_delay(base_delay, attempt)
                LOGGER.warning(
                    "GitHub rate limited (HTTP %s) on %s; waiting %.2fs", response.status_code, path, delay
                )
                if has_next:
                    await asyncio.sleep(delay)
                continue

            if response.status_code >= 500:
                delay = backoff_delay(base_delay, attempt)
                LOGGER.warning("GitHub server error %s on %s; retrying in %.2fs", response.status_code, path, delay)
                if has_next:
                    await asyncio.sleep(delay)
                continue

            return response

        if last_error is not None:
            raise GitHubClientError(f"Request to {path} failed: {last_error}") from last_error
        raise GitHubClientError(f"Failed to fetch {path} after {attempts} retries")

    async def list_owned_repositories(self, username: str, per_page: int = 30) -> list[RepositoryRecord]:
        """Repositories owned by ``username``, most recently updated first."""

        payload = await self._get_list(
            f"/users/{_segment(username)}/repos",
            {"type": "owner", "sort": "updated", "per_page": per_page},
        )
        return _parse_all(payload, RepositoryRecord.from_api)

    async def list_organizations(self, username: str) -> list[OrganizationRecord]:
        payload = await self._get_list(f"/users/{_segment(username)}/orgs")
        return _parse_all(payload, OrganizationRecord.from_api)

    async def list_organization_repositories(self, org: str, per_page: int) -> list[RepositoryRecord]:
        payload = await self._get_list(
            f"/orgs/{_segment(org)}/repos",
            {"type": "public", "sort": "updated", "per_page": per_page},
        )
        return _parse_all(payload, RepositoryRecord.from_api)

    async def list_commits(
        self,
        owner: str,
        repository: str,
        author: str,
        since: datetime,
        per_page: int = 100,
    ) -> list[CommitRecord]:
        """First page of commits by ``author`` no earlier than ``since``."""

        payload = await self._get_list(
            f"/repos/{_segment(owner)}/{_segment(repository)}/commits",
            {
                "author": author,
                "since": since.astimezone(UTC).isoformat().replace("+00:00", "Z"),
                "per_page": per_page,
            },
            initial_backoff=self._settings.commit_initial_backoff,
        )
        return _parse_all(payload, CommitRecord.from_api)

    async def _get_list(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        initial_backoff: float | None = None,
    ) -> list[Any]:
        response = await self.request(path, params, initial_backoff=initial_backoff)
        if not response.is_success:
            LOGGER.warning("GitHub returned HTTP %s for %s", response.status_code, path)
            return []
        try:
            payload = response.json()
        except ValueError:
            LOGGER.warning("GitHub returned a non-JSON body for %s", path)
            return []
        if not isinstance(payload, list):
            LOGGER.warning("Unexpected payload shape for %s: %s", path, type(payload).__name__)
            return []
        return payload


def _parse_all(items: list[Any], parser: Callable[[Any], T | None]) -> list[T]:
    parsed: list[T] = []
    for item in items:
        record = parser(item)
        if record is not None:
            parsed.append(record)
    return parsed


def _segment(value: str) -> str:
    return quote(value, safe="")


def _retry_after_seconds(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        pass

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at is None:
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    delta = (retry_at - datetime.now(timezone.utc)).total_seconds()
    return max(delta, 0.0)


__all__ = ["GitHubClientError", "GitHubRestClient", "backoff_delay"]
