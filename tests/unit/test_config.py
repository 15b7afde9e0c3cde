"""
Unit tests for configuration module
"""

import os
from unittest.mock import patch

import pytest

from websession.core.config import DEFAULT_TABLE_NAME, Settings
from websession.db.session import DatabaseRegistry, get_connect_args, registry_from_settings

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


class TestSettings:
    """Test application settings configuration"""

    def test_default_settings(self):
        """Test default configuration values"""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.app_name == "websession"
        assert settings.database_url == "sqlite:///./data/websession.db"
        assert settings.extra_databases == {}
        assert settings.session_table_name == DEFAULT_TABLE_NAME
        assert settings.session_auto_create is False
        assert settings.session_cookie_name == "websession"
        assert settings.structured_logging is False

    def test_environment_override(self):
        """Test that environment variables override defaults, case-insensitively"""
        with patch.dict(os.environ, {
            "DATABASE_URL": "postgresql://sessions@db/app",
            "SESSION_TABLE_NAME": "api_sessions",
            "session_auto_create": "true",
        }):
            settings = Settings(_env_file=None)

        assert settings.database_url == "postgresql://sessions@db/app"
        assert settings.session_table_name == "api_sessions"
        assert settings.session_auto_create is True

    def test_extra_databases_json(self):
        """Test named databases parsed from a JSON environment value"""
        with patch.dict(os.environ, {"EXTRA_DATABASES": '{"audit": "sqlite:///./audit.db"}'}):
            settings = Settings(_env_file=None)

        assert settings.extra_databases == {"audit": "sqlite:///./audit.db"}


class TestRegistryFromSettings:
    """Test building database registrations from settings"""

    def test_registers_default_and_extra(self, tmp_path):
        settings = Settings(
            _env_file=None,
            database_url=f"sqlite:///{tmp_path / 'main.db'}",
            extra_databases={"audit": f"sqlite:///{tmp_path / 'audit.db'}"},
        )

        registry = registry_from_settings(settings)
        try:
            assert isinstance(registry, DatabaseRegistry)
            assert registry.database_ids == [None, "audit"]
            assert str(registry.engine("audit").url).endswith("audit.db")
        finally:
            registry.dispose()

    def test_connect_args(self):
        assert get_connect_args("sqlite:///x.db") == {"check_same_thread": False}
        assert get_connect_args("postgresql://db/app") == {}
