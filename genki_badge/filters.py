"""Predicates deciding which commits count towards the activity score."""

from __future__ import annotations

import re

from .models import CommitRecord

BOT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"dependabot",
        r"renovate",
        r"greenkeeper",
        r"github-actions",
        r"codecov",
        r"snyk",
        r"web-flow",
        r"\[bot\](?=\s|$)",
        r"-bot(?=\s|$)",
        r"(?:^|\s)bot-",
        r"noreply@github\.com",
    )
)


def is_bot_account(login: str | None = None, name: str | None = None, email: str | None = None) -> bool:
    """Return ``True`` when any of the identity fields looks like an automation account."""

    if not login and not name and not email:
        return False
    identity = f"{login or ''} {name or ''} {email or ''}".lower()
    return any(pattern.search(identity) for pattern in BOT_PATTERNS)


def is_merge_commit(commit: CommitRecord) -> bool:
    return commit.parent_count >= 2


def should_count_commit(commit: CommitRecord, username: str) -> bool:
    """Keep only non-merge commits authored by ``username`` itself.

    Commits whose author is linked to a different login (co-authoring tools,
    unlinked e-mail addresses) are excluded.
    """

    if is_merge_commit(commit):
        return False
    if is_bot_account(commit.author_login, commit.author_name, commit.author_email):
        return False
    return commit.author_login == username


__all__ = ["BOT_PATTERNS", "is_bot_account", "is_merge_commit", "should_count_commit"]
