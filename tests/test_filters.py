from __future__ import annotations

import pytest

from genki_badge.filters import is_bot_account, should_count_commit
from genki_badge.models import CommitRecord


def _commit(login: str | None = "octocat", *, name: str | None = "Octo Cat", email: str | None = None, parents: int = 1):
    return CommitRecord(
        author_login=login,
        author_name=name,
        author_email=email or "octocat@users.noreply.github.com",
        parent_count=parents,
    )


@pytest.mark.parametrize("login", ["octocat", "someone-else", None])
def test_merge_commits_are_excluded_regardless_of_author(login):
    assert should_count_commit(_commit(login, parents=2), "octocat") is False
    assert should_count_commit(_commit(login, parents=3), "octocat") is False


@pytest.mark.parametrize("parents", [0, 1])
def test_own_non_merge_commits_are_counted(parents):
    assert should_count_commit(_commit(parents=parents), "octocat") is True


def test_commits_attributed_to_another_login_are_excluded():
    assert should_count_commit(_commit("octo-alt"), "octocat") is False
    assert should_count_commit(_commit(None), "octocat") is False


@pytest.mark.parametrize(
    "login,name,email",
    [
        ("dependabot[bot]", None, None),
        ("renovate-app", None, None),
        ("release-bot", None, None),
        ("bot-deployer", None, None),
        (None, "GitHub", "noreply@github.com"),
        ("web-flow", None, None),
        ("ci", "GitHub-Actions", None),
    ],
)
def test_bot_identities_are_detected(login, name, email):
    assert is_bot_account(login, name, email) is True


def test_human_identities_are_not_bots():
    assert is_bot_account("octocat", "Octo Cat", "octocat@users.noreply.github.com") is False
    assert is_bot_account("robotics-fan") is False
    assert is_bot_account() is False


def test_bot_commit_is_excluded_even_when_login_matches():
    assert should_count_commit(_commit("snyk-bot"), "snyk-bot") is False
