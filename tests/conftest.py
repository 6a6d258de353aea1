"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config.settings import Settings


@pytest.fixture
def settings():
    """Create test settings."""
    return Settings()
