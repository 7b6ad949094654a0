"""Domain models used by the badge service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .config import UTC


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    MODERATE = "moderate"
    INACTIVE = "inactive"


@dataclass(slots=True, frozen=True)
class RepositoryRecord:
    """Repository entry as listed for a user or an organization."""

    name: str
    updated_at: datetime
    owner_login: str | None = None

    @classmethod
    def from_api(cls, payload: Any) -> "RepositoryRecord | None":
        """Convert a REST payload, returning ``None`` when the shape does not match."""

        if not isinstance(payload, dict):
            return None
        name = payload.get("name")
        updated_at = parse_timestamp(payload.get("updated_at"))
        if not isinstance(name, str) or not name or updated_at is None:
            return None
        owner = payload.get("owner")
        owner_login = owner.get("login") if isinstance(owner, dict) else None
        return cls(
            name=name,
            updated_at=updated_at,
            owner_login=owner_login if isinstance(owner_login, str) else None,
        )


@dataclass(slots=True, frozen=True)
class OrganizationRecord:
    login: str

    @classmethod
    def from_api(cls, payload: Any) -> "OrganizationRecord | None":
        if not isinstance(payload, dict):
            return None
        login = payload.get("login")
        if not isinstance(login, str) or not login:
            return None
        return cls(login=login)


@dataclass(slots=True, frozen=True)
class CommitRecord:
    """Author identity and parent count of a listed commit."""

    author_login: str | None
    author_name: str | None
    author_email: str | None
    parent_count: int

    @classmethod
    def from_api(cls, payload: Any) -> "CommitRecord | None":
        if not isinstance(payload, dict):
            return None
        commit = payload.get("commit")
        parents = payload.get("parents")
        if not isinstance(commit, dict) or not isinstance(parents, list):
            return None

        # ``author`` is null when the commit email is not linked to an account.
        account = payload.get("author")
        login = account.get("login") if isinstance(account, dict) else None
        git_author = commit.get("author")
        if not isinstance(git_author, dict):
            git_author = {}
        return cls(
            author_login=_optional_str(login),
            author_name=_optional_str(git_author.get("name")),
            author_email=_optional_str(git_author.get("email")),
            parent_count=len(parents),
        )


@dataclass(slots=True, frozen=True)
class AggregationResult:
    """Outcome of one aggregation run."""

    commits: int
    owned_repositories: int
    org_repositories: int


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Persisted result of an aggregation run plus its classification."""

    commits: int
    status: HealthStatus
    last_updated: datetime
    owned_repositories: int = 0
    org_repositories: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "commits": self.commits,
            "status": self.status.value,
            "lastUpdated": self.last_updated.astimezone(UTC).isoformat().replace("+00:00", "Z"),
            "sources": {"owned": self.owned_repositories, "org": self.org_repositories},
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "Snapshot | None":
        """Rebuild a snapshot from its stored form; ``None`` if it cannot be trusted."""

        if not isinstance(payload, dict):
            return None
        commits = payload.get("commits")
        last_updated = parse_timestamp(payload.get("lastUpdated"))
        if not isinstance(commits, int) or isinstance(commits, bool) or last_updated is None:
            return None
        try:
            status = HealthStatus(payload.get("status"))
        except ValueError:
            return None
        sources = payload.get("sources")
        if not isinstance(sources, dict):
            sources = {}
        return cls(
            commits=commits,
            status=status,
            last_updated=last_updated,
            owned_repositories=_as_int(sources.get("owned")),
            org_repositories=_as_int(sources.get("org")),
        )


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp as emitted by GitHub into an aware UTC datetime."""

    if not isinstance(value, str) or not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _as_int(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


__all__ = [
    "AggregationResult",
    "CommitRecord",
    "HealthStatus",
    "OrganizationRecord",
    "RepositoryRecord",
    "Snapshot",
    "parse_timestamp",
]
