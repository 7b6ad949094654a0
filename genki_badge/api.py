"""HTTP surface serving the activity badge."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from .aggregator import CommitAggregator
from .badge import render_badge, resolve_style
from .cache import CacheController, ConfigurationError, IdentityRejectedError
from .config import AppConfig, UTC
from .github_client import GitHubRestClient
from .store import SnapshotStore, open_snapshot_store

LOGGER = logging.getLogger(__name__)

SERVICE_NAME = "Am I Genki? Badge Service"
BADGE_CACHE_CONTROL = "public, max-age=3600"


def create_app(
    config: AppConfig | None = None,
    store: SnapshotStore | None = None,
    client: GitHubRestClient | None = None,
) -> FastAPI:
    """Build the application; injected ``store`` and ``client`` are not closed on shutdown."""

    config = config or AppConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            github = client or await stack.enter_async_context(GitHubRestClient(config.github))
            snapshots = store or await open_snapshot_store(config.store.backend, config.database, stack)
            aggregator = CommitAggregator(config.score, github)
            app.state.controller = CacheController(config.score, snapshots, aggregator)
            yield

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "configured": bool(config.score.username),
            "timestamp": datetime.now(tz=UTC).isoformat().replace("+00:00", "Z"),
        }

    @app.get("/badge")
    async def badge(request: Request, background_tasks: BackgroundTasks, style: str | None = None) -> Response:
        controller: CacheController = request.app.state.controller
        try:
            snapshot = await controller.resolve(background_tasks.add_task)
        except ConfigurationError as exc:
            return PlainTextResponse(str(exc), status_code=500)
        except IdentityRejectedError as exc:
            return PlainTextResponse(str(exc), status_code=400)
        except Exception:
            LOGGER.exception("Error generating badge")
            return PlainTextResponse("Error generating badge", status_code=500)

        svg = render_badge(snapshot.status, snapshot.commits, resolve_style(style))
        return Response(
            content=svg,
            media_type="image/svg+xml",
            headers={
                "Cache-Control": BADGE_CACHE_CONTROL,
                "X-Commits": str(snapshot.commits),
                "X-Status": snapshot.status.value,
                "X-Username": config.score.username or "",
            },
        )

    return app


__all__ = ["create_app"]
