"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
For standard test utilities, see tests/__init__.py
"""

import pytest

from tests import make_memory_engine, make_session_factory


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring a SQLite database (deselect with '-m \"not db\"')"
    )


@pytest.fixture
def engine():
    """Fresh in-memory schema per test."""
    engine = make_memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture(autouse=True)
def no_dry_run(monkeypatch):
    """Channel factory tests expect real channel classes."""
    monkeypatch.delenv("NOTIFICATION_DRY_RUN", raising=False)
