"""
Pytest configuration for the cronwrap test suite.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from cronwrap.config import Settings
from cronwrap.status import StatusRecord, StatusStore


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests that wait on a real timeout"
    )
    config.addinivalue_line(
        "markers", "posix: marks tests that rely on POSIX process groups or permissions"
    )


def pytest_collection_modifyitems(config, items):
    if os.name == "posix":
        return
    skip_posix = pytest.mark.skip(reason="requires a POSIX platform")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip_posix)


@pytest.fixture
def status_dir(tmp_path: Path) -> Path:
    """An existing, empty status directory."""
    directory = tmp_path / "status"
    directory.mkdir()
    return directory


@pytest.fixture
def store(status_dir: Path) -> StatusStore:
    return StatusStore(status_dir)


@pytest.fixture
def settings(status_dir: Path) -> Settings:
    return Settings(status_dir=status_dir)


@pytest.fixture
def make_record():
    """Factory for valid StatusRecords with overridable fields."""

    def _make(name: str = "backup", **overrides) -> StatusRecord:
        fields = dict(
            name=name,
            last_run=datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc),
            command_line=["/usr/local/bin/backup", "--full"],
            user_name="root",
            user_id="0",
            environment=["PATH=/usr/bin:/bin", "HOME=/root"],
            output="done\n",
            error="",
            exit_status=0,
            success=True,
        )
        fields.update(overrides)
        return StatusRecord(**fields)

    return _make


@pytest.fixture
def restore_root_logging():
    """Drop handlers installed by configure_logging() and restore the level."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
    root.setLevel(level)
