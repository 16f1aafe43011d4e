"""
Shared fixtures for backup tests.

Provides a WorkspaceConfig rooted in a temporary directory and a retry
policy with no sleeping, so nothing here ever touches Bitbucket.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

import pytest

from bitbucket_backup.config.loader import WorkspaceConfig
from bitbucket_backup.reliability.retry import RetryPolicy

TOKEN = "ATATT3xFfGF0-test-token"


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def backup_root(tmp_path: Path) -> Path:
    return tmp_path / "backups"


@pytest.fixture
def config(backup_root: Path) -> WorkspaceConfig:
    return WorkspaceConfig(
        account_email="ops@example.com",
        api_token=TOKEN,
        workspace="acme",
        backup_root=backup_root,
        max_parallel_jobs=1,
    )


@pytest.fixture
def make_config(config):
    """Build a variant of the base config: make_config(dry_run=True)."""

    def _make(**overrides) -> WorkspaceConfig:
        return replace(config, **overrides)

    return _make


@pytest.fixture
def no_wait_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial_delay=0, backoff_factor=2)


def write_settings(path: Path, **values: str) -> Path:
    """Helper to write a dotenv settings file."""
    path.write_text(
        "".join(f"{key}={value}\n" for key, value in values.items()),
        encoding="utf-8",
    )
    return path
