from __future__ import annotations

import pytest
from pydantic import ValidationError

from genki_badge.config import AppConfig, ScoreSettings


def test_from_env_reads_service_variables():
    env = {
        "GITHUB_USERNAME": "octocat",
        "HEALTHY_THRESHOLD": "20",
        "MODERATE_THRESHOLD": "8",
        "MONITORING_DAYS": "7",
        "CACHE_TTL": "3600",
        "JST_UPDATE_HOUR": "6",
        "GH_TOKEN": "secret",
        "INCLUDE_ORG_REPOS": "true",
        "MAX_REPOS_PER_ORG": "10",
        "EXCLUDE_REPOS": "dotfiles, sandbox ",
        "EXCLUDE_ORGS": "legacy-org",
        "SNAPSHOT_STORE": "postgres",
    }

    config = AppConfig.from_env(env)

    assert config.github.token == "secret"
    assert config.score.username == "octocat"
    assert config.score.healthy_threshold == 20
    assert config.score.moderate_threshold == 8
    assert config.score.monitoring_days == 7
    assert config.score.cache_ttl == 3600
    assert config.score.refresh_hour == 6
    assert config.score.include_org_repos is True
    assert config.score.max_repos_per_org == 10
    assert config.score.exclude_repos == ["dotfiles", "sandbox"]
    assert config.score.exclude_orgs == ["legacy-org"]
    assert config.store.backend == "postgres"


def test_from_env_defaults():
    config = AppConfig.from_env({})

    assert config.score.username is None
    assert config.score.healthy_threshold == 15
    assert config.score.moderate_threshold == 5
    assert config.score.monitoring_days == 14
    assert config.score.refresh_hour == 8
    assert config.score.include_org_repos is False
    assert config.score.exclude_repos == ["dotfiles"]
    assert config.score.exclude_orgs == []
    assert config.store.backend == "memory"


def test_overrides_take_precedence_over_environment():
    config = AppConfig.from_env({"GITHUB_USERNAME": "octocat"}, overrides={"username": "hubot", "monitoring_days": 3})

    assert config.score.username == "hubot"
    assert config.score.monitoring_days == 3


def test_only_literal_true_enables_org_repositories():
    assert AppConfig.from_env({"INCLUDE_ORG_REPOS": "yes"}).score.include_org_repos is False


def test_reversed_thresholds_are_rejected():
    with pytest.raises(ValidationError):
        ScoreSettings(healthy_threshold=5, moderate_threshold=15)
    with pytest.raises(ValidationError):
        AppConfig.from_env({"HEALTHY_THRESHOLD": "5", "MODERATE_THRESHOLD": "5"})


def test_refresh_hour_must_be_a_clock_hour():
    with pytest.raises(ValidationError):
        ScoreSettings(refresh_hour=24)
