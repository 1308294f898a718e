"""Pytest configuration for tickbar (src layout)."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import structlog


def pytest_configure() -> None:
    project_root = Path(__file__).resolve().parents[1]
    src_root = project_root / "src"
    sys.path.insert(0, str(src_root))


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by a test."""
    yield
    structlog.reset_defaults()
