"""Key-value persistence for badge snapshots."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Protocol

import asyncpg

from .config import DatabaseSettings, UTC
from .models import Snapshot

LOGGER = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "sql" / "schema.sql"
KEY_PREFIX = "github-health"


def cache_key(username: str) -> str:
    return f"{KEY_PREFIX}:{username}"


class SnapshotStore(Protocol):
    async def get(self, key: str) -> Snapshot | None: ...

    async def put(self, key: str, snapshot: Snapshot, ttl: int) -> None: ...


class MemorySnapshotStore:
    """Process-local store, mainly for development and tests."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._entries: dict[str, tuple[dict, datetime]] = {}

    async def get(self, key: str) -> Snapshot | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return Snapshot.from_payload(payload)

    async def put(self, key: str, snapshot: Snapshot, ttl: int) -> None:
        self._entries[key] = (snapshot.to_payload(), self._clock() + timedelta(seconds=ttl))


class PostgresSnapshotStore:
    """Snapshot store backed by a Postgres table."""

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            dsn=self._settings.dsn,
            init=self._init_connection,
            command_timeout=self._settings.statement_timeout,
        )

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None

    async def __aenter__(self) -> "PostgresSnapshotStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()

    async def create_schema(self) -> None:
        pool = self._ensure_pool()
        statements = _load_sql_statements(SCHEMA_PATH)
        async with pool.acquire() as conn:
            for statement in statements:
                await conn.execute(statement)

    async def get(self, key: str) -> Snapshot | None:
        pool = self._ensure_pool()
        query = """
            SELECT payload
            FROM badge_snapshots
            WHERE cache_key = $1 AND expires_at > NOW()
        """
        async with pool.acquire() as conn:
            raw = await conn.fetchval(query, key)
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            LOGGER.warning("Discarding unreadable snapshot for %s", key)
            return None
        return Snapshot.from_payload(payload)

    async def put(self, key: str, snapshot: Snapshot, ttl: int) -> None:
        pool = self._ensure_pool()
        upsert_sql = """
            INSERT INTO badge_snapshots (cache_key, payload, updated_at, expires_at)
            VALUES ($1, $2::jsonb, NOW(), NOW() + make_interval(secs => $3))
            ON CONFLICT (cache_key) DO UPDATE SET
                payload = EXCLUDED.payload,
                updated_at = EXCLUDED.updated_at,
                expires_at = EXCLUDED.expires_at
        """
        async with pool.acquire() as conn:
            await conn.execute(upsert_sql, key, json.dumps(snapshot.to_payload()), float(ttl))

    def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool has not been initialized")
        return self._pool

    async def _init_connection(self, conn: asyncpg.Connection) -> None:
        await conn.execute("SET TIME ZONE 'UTC'")
        await conn.execute(f"SET statement_timeout = {int(self._settings.statement_timeout * 1000)}")


def _load_sql_statements(path: Path) -> list[str]:
    script = path.read_text(encoding="utf-8")
    statements: list[str] = []
    for part in script.split(";"):
        statement = part.strip()
        if statement:
            statements.append(statement)
    return statements


async def open_snapshot_store(
    backend: str,
    database: DatabaseSettings,
    stack: AsyncExitStack,
) -> SnapshotStore:
    """Open the configured store, registering any cleanup on ``stack``."""

    if backend == "postgres":
        return await stack.enter_async_context(PostgresSnapshotStore(database))
    return MemorySnapshotStore()


__all__ = [
    "MemorySnapshotStore",
    "PostgresSnapshotStore",
    "SnapshotStore",
    "cache_key",
    "open_snapshot_store",
]
