"""Tests for the GitHub REST client."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from genki_badge.config import GitHubSettings
from genki_badge.github_client import GitHubClientError, GitHubRestClient, backoff_delay


def _settings(**kwargs) -> GitHubSettings:
    values = {"token": None, "max_retries": 3, "initial_backoff": 1.0, "request_timeout": 5.0}
    values.update(kwargs)
    return GitHubSettings(**values)


@pytest.fixture
def slept(monkeypatch) -> list[float]:
    durations: list[float] = []

    async def fake_sleep(duration: float) -> None:  # pragma: no cover - patched behaviour
        durations.append(duration)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return durations


def test_request_retries_on_secondary_rate_limit(slept):
    """A 403 carrying Retry-After is retried after the hinted delay."""

    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            return httpx.Response(
                403,
                json={"message": "You have exceeded a secondary rate limit. Please wait."},
                headers={"Retry-After": "7"},
            )
        return httpx.Response(200, json=[{"login": "acme"}])

    async def runner() -> httpx.Response:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
            client = GitHubRestClient(_settings(), async_client)
            return await client.request("/users/octocat/orgs")

    response = asyncio.run(runner())

    assert response.status_code == 200
    assert call_count == 2
    assert slept == [7.0]


def test_request_uses_exponential_backoff_without_retry_after(slept):
    statuses = iter([429, 502, 200])

    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        return httpx.Response(next(statuses), json=[])

    async def runner() -> httpx.Response:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
            client = GitHubRestClient(_settings(initial_backoff=0.5), async_client)
            return await client.request("/users/octocat/repos")

    response = asyncio.run(runner())

    assert response.status_code == 200
    assert slept == [0.5, 1.0]


def test_request_returns_non_retryable_status_immediately(slept):
    call_count = 0

    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        nonlocal call_count
        call_count += 1
        return httpx.Response(404, json={"message": "Not Found"})

    async def runner() -> httpx.Response:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
            client = GitHubRestClient(_settings(), async_client)
            return await client.request("/repos/octocat/missing/commits")

    response = asyncio.run(runner())

    assert response.status_code == 404
    assert call_count == 1
    assert slept == []


def test_request_raises_after_exhausting_server_errors(slept):
    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        return httpx.Response(503, text="unavailable")

    async def runner() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
            client = GitHubRestClient(_settings(), async_client)
            with pytest.raises(GitHubClientError) as exc:
                await client.request("/users/octocat/repos")
        assert "after 3 retries" in str(exc.value)

    asyncio.run(runner())

    # No sleep follows the final attempt.
    assert slept == [1.0, 2.0]


def test_request_chains_last_network_error(slept):
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        raise httpx.ConnectError("connection refused", request=request)

    async def runner() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
            client = GitHubRestClient(_settings(max_retries=2), async_client)
            with pytest.raises(GitHubClientError) as exc:
                await client.request("/users/octocat/repos")
        assert isinstance(exc.value.__cause__, httpx.ConnectError)

    asyncio.run(runner())

    assert slept == [1.0]


def test_backoff_delay_clamps_exponent():
    assert backoff_delay(0.5, 0) == 0.5
    assert backoff_delay(1.0, 3) == 8.0
    assert backoff_delay(1.0, 6) == 64.0
    assert backoff_delay(1.0, 500) == 64.0


def test_list_commits_sends_filters_and_credentials(slept):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {
                    "sha": "abc",
                    "author": {"login": "octocat"},
                    "commit": {"author": {"name": "Octo Cat", "email": "octo@example.com"}},
                    "parents": [{"sha": "def"}],
                },
                {"sha": "broken"},
            ],
        )

    async def runner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
            client = GitHubRestClient(_settings(token="secret"), async_client)
            return await client.list_commits(
                "acme", "demo", "octocat", datetime(2025, 5, 18, 12, 0, tzinfo=timezone.utc)
            )

    commits = asyncio.run(runner())

    assert len(commits) == 1
    assert commits[0].author_login == "octocat"
    assert commits[0].parent_count == 1
    request = seen[0]
    assert request.url.path == "/repos/acme/demo/commits"
    assert request.url.params["author"] == "octocat"
    assert request.url.params["since"] == "2025-05-18T12:00:00Z"
    assert request.url.params["per_page"] == "100"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["User-Agent"] == "am-i-genki-badge"


def test_listing_degrades_to_empty_on_unexpected_body(slept):
    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        return httpx.Response(200, json={"message": "not a list"})

    async def runner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
            client = GitHubRestClient(_settings(), async_client)
            return await client.list_organizations("octocat")

    assert asyncio.run(runner()) == []


def test_request_honours_retry_after_http_date(slept):
    statuses = iter([429, 200])

    def handler(_: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        status = next(statuses)
        if status == 429:
            retry_at = datetime.now(timezone.utc) + timedelta(seconds=30)
            return httpx.Response(
                429,
                json={"message": "slow down"},
                headers={"Retry-After": format_datetime(retry_at, usegmt=True)},
            )
        return httpx.Response(200, json=[])

    async def runner() -> httpx.Response:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
            client = GitHubRestClient(_settings(), async_client)
            return await client.request("/users/octocat/repos")

    response = asyncio.run(runner())

    assert response.status_code == 200
    assert len(slept) == 1
    assert 0 < slept[0] <= 30
