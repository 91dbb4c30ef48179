"""Shared fixtures and population factories for scheduling tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from stagger.models.scheduling import PriorityTier, TargetRecord
from stagger.scheduling import config_loader
from stagger.scheduling.generator import TaskGenerator

# Canonical cycle start used throughout the suite
CYCLE_START = datetime(2026, 1, 20, 10, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Population factories
# ---------------------------------------------------------------------------


def make_ids(count: int, prefix: str = "patient") -> list[str]:
    return [f"{prefix}-{i}" for i in range(count)]


def make_targets(count: int, prefix: str = "patient") -> list[TargetRecord]:
    return [
        TargetRecord(
            id=target_id,
            endpoint_reference=f"https://vendor.example.com/{target_id}",
            priority_tier=PriorityTier.medium,
        )
        for target_id in make_ids(count, prefix)
    ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def generator() -> TaskGenerator:
    """Generator with the default 300 s / 300 bin cadence."""
    return TaskGenerator()


@pytest.fixture
def cycle_start() -> datetime:
    return CYCLE_START


@pytest.fixture
def reset_schedule_config():
    """Isolate tests from the cached schedule config singleton."""
    config_loader._config = None
    yield
    config_loader._config = None
