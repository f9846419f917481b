"""Shared fixtures: an isolated data dir, jobs dir and fully wired engine."""

from __future__ import annotations

from pathlib import Path

import pytest

from copyartifact_engine.config import Settings
from copyartifact_engine.engine import Engine


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    jobs_dir = tmp_path / "jobs_config"
    jobs_dir.mkdir()
    return Settings(data_dir=tmp_path / "data", jobs_dir=jobs_dir)


@pytest.fixture
def engine(settings: Settings) -> Engine:
    return Engine(settings)


@pytest.fixture
def consumer_workspace(tmp_path: Path) -> Path:
    """Workspace of the build that runs the copy step."""
    root = tmp_path / "consumer"
    root.mkdir()
    return root
