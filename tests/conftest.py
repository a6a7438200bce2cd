"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path (development checkouts)
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# Helper scripts run as child processes
FIXTURES_DIR = Path(__file__).parent / "fixtures"

from shellrun.config import Config, load_config  # noqa: E402
from shellrun.shell import Shell  # noqa: E402


@pytest.fixture
def fixtures_dir() -> Path:
    """Directory holding helper child scripts."""
    return FIXTURES_DIR


@pytest.fixture
def stubborn_child() -> list[str]:
    """argv prefix running the SIGTERM-ignoring helper with this interpreter."""
    return [str(FIXTURES_DIR / "stubborn_child.py")]


@pytest.fixture
def config() -> Config:
    """Configuration with short termination timings for testing."""
    config = load_config()
    config.term_polls = 5
    config.term_interval = 0.05
    config.kill_timeout = 1.0
    return config


@pytest.fixture
def shell(config: Config) -> Shell:
    """Shell using the short termination timings."""
    return Shell(config)
