"""Command line interface for the activity badge service."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Optional

import typer

from .aggregator import CommitAggregator
from .badge import VALID_BADGE_STYLES, render_badge, resolve_style
from .cache import BadgeServiceError, CacheController, TaskScheduler
from .config import AppConfig
from .github_client import GitHubRestClient
from .scoring import classify_health
from .store import PostgresSnapshotStore, open_snapshot_store

app = typer.Typer(add_completion=False)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _load_config(username: Optional[str], github_token: Optional[str], **extra: object) -> AppConfig:
    overrides: dict[str, object] = {key: value for key, value in extra.items() if value is not None}
    if username:
        overrides["username"] = username
    if github_token:
        overrides["github_token"] = github_token
    return AppConfig.from_env(overrides=overrides)


@app.command("init-db")
def init_db(
    dsn: Optional[str] = typer.Option(None, help="Postgres DSN to use"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Create the snapshot table."""

    configure_logging(log_level)
    overrides = {"database_dsn": dsn} if dsn else {}
    config = AppConfig.from_env(overrides=overrides)

    async def runner() -> None:
        async with PostgresSnapshotStore(config.database) as store:
            await store.create_schema()

    asyncio.run(runner())


@app.command("score")
def score(
    username: Optional[str] = typer.Option(None, help="GitHub login to score"),
    days: Optional[int] = typer.Option(None, help="Length of the monitoring window in days"),
    include_orgs: Optional[bool] = typer.Option(None, "--include-orgs/--no-include-orgs", help="Count organization repositories"),
    github_token: Optional[str] = typer.Option(None, envvar="GITHUB_TOKEN", help="GitHub token"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Run one aggregation and print the result without touching the cache."""

    configure_logging(log_level)
    config = _load_config(username, github_token, monitoring_days=days, include_org_repos=include_orgs)
    if not config.score.username:
        raise typer.BadParameter("A GitHub username is required")

    async def runner() -> None:
        async with GitHubRestClient(config.github) as client:
            aggregator = CommitAggregator(config.score, client)
            result = await aggregator.aggregate(config.score.username)  # type: ignore[arg-type]
        status = classify_health(
            result.commits,
            config.score.healthy_threshold,
            config.score.moderate_threshold,
        )
        typer.echo(
            f"{config.score.username}: {result.commits} commits in {config.score.monitoring_days} days "
            f"({status.value}); owned repos: {result.owned_repositories}, org repos: {result.org_repositories}"
        )

    asyncio.run(runner())


@app.command("badge")
def badge(
    output: Path = typer.Option(..., dir_okay=False, help="Destination SVG file"),
    style: str = typer.Option("flat", help=f"Badge style ({', '.join(VALID_BADGE_STYLES)})"),
    username: Optional[str] = typer.Option(None, help="GitHub login to score"),
    github_token: Optional[str] = typer.Option(None, envvar="GITHUB_TOKEN", help="GitHub token"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Resolve the badge through the snapshot cache and write it to a file."""

    configure_logging(log_level)
    config = _load_config(username, github_token)

    async def runner() -> None:
        scheduler = TaskScheduler()
        async with AsyncExitStack() as stack:
            client = await stack.enter_async_context(GitHubRestClient(config.github))
            store = await open_snapshot_store(config.store.backend, config.database, stack)
            controller = CacheController(config.score, store, CommitAggregator(config.score, client))
            try:
                snapshot = await controller.resolve(scheduler)
            except BadgeServiceError as exc:
                raise typer.BadParameter(str(exc)) from exc
            output.write_text(render_badge(snapshot.status, snapshot.commits, resolve_style(style)), encoding="utf-8")
            typer.echo(f"Wrote {snapshot.status.value} badge ({snapshot.commits} commits) to {output}")
            # Keep the client and store open until a scheduled refresh is done.
            await scheduler.drain()

    asyncio.run(runner())


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind"),
    port: int = typer.Option(8000, help="Port to listen on"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Run the HTTP service."""

    import uvicorn

    from .api import create_app

    configure_logging(log_level)
    uvicorn.run(create_app(), host=host, port=port, log_level=log_level.lower())


__all__ = ["app"]
