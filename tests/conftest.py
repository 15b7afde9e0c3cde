"""
Global test configuration and fixtures for the session store

Every test gets its own temporary SQLite database file, registered as the
default database of a fresh registry.
"""

import os
import tempfile

import pytest

from websession.core.config import settings
from websession.db.models.session_record import SessionSchema
from websession.db.session import DatabaseRegistry
from websession.sessions.store import DatabaseSessions


# ============================================================================
# Test Environment Setup
# ============================================================================

@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    """Keep logs out of the working tree and table creation explicit"""
    monkeypatch.setattr(settings, "log_dir", str(tmp_path / "logs"))
    monkeypatch.setattr(settings, "session_auto_create", False)
    yield settings


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def db_url():
    """Create a temporary SQLite database file for each test function"""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')

    yield f"sqlite:///{db_path}"

    # Cleanup
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(scope="function")
def registry(db_url):
    """Registry holding the temporary database as the default"""
    registry = DatabaseRegistry()
    registry.register(None, db_url)

    yield registry

    registry.dispose()


@pytest.fixture(scope="function")
def schema():
    return SessionSchema()


@pytest.fixture(scope="function")
def engine(registry):
    return registry.engine()


@pytest.fixture(scope="function")
def store(registry, schema, engine):
    """Session store on a prepared default table"""
    schema.prepare(engine)
    return DatabaseSessions(registry, schema=schema)


# ============================================================================
# Test Markers and Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers and settings"""
    config.addinivalue_line(
        "markers", "unit: fast tests with no external services"
    )
    config.addinivalue_line(
        "markers", "integration: tests crossing the web framework boundary"
    )
    config.addinivalue_line(
        "markers", "security: mark test as security-related"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on file location"""
    for item in items:
        if "security" in str(item.fspath):
            item.add_marker(pytest.mark.security)
