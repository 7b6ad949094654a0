"""Mapping from commit counts to health tiers."""

from __future__ import annotations

from .models import HealthStatus


def classify_health(commits: int, healthy_threshold: int, moderate_threshold: int) -> HealthStatus:
    if commits >= healthy_threshold:
        return HealthStatus.HEALTHY
    if commits >= moderate_threshold:
        return HealthStatus.MODERATE
    return HealthStatus.INACTIVE


__all__ = ["classify_health"]
