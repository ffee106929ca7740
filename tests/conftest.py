"""
Pytest configuration and fixtures for rasp tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from rasp.reporting import CollectingReporter


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def reporter() -> CollectingReporter:
    """Reporter that records every trace message."""
    return CollectingReporter()


@pytest.fixture
def sample_config_yaml() -> str:
    """Return a simple policy YAML for testing."""
    return """
mode: block
allowRead:
  - "*/tmp/*"
allowNet:
  - "https://api.github.com/*"
  - "*.github.com:443"
allowApi:
  - module: os
    method: getcwd
"""


@pytest.fixture
def alert_config_yaml() -> str:
    """Return a policy YAML in alert mode with no rules."""
    return """
mode: alert
"""
