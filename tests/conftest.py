"""Shared fixtures for dbgateway tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from dbgateway.config.models import SQLiteConfig

from tests.support import RecordingAdapter


@pytest.fixture
def recording_adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def sqlite_file(tmp_path: Path) -> Path:
    return tmp_path / "gateway_test.db"


@pytest.fixture
def sqlite_config(sqlite_file: Path) -> SQLiteConfig:
    return SQLiteConfig(name="local", filename=str(sqlite_file))

