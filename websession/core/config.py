"""
Application configuration using Pydantic Settings.

Configuration values can be set via environment variables or .env file.
"""

from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TABLE_NAME = "websession"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "websession"
    debug: bool = False

    # Default database, addressed by database id None
    database_url: str = "sqlite:///./data/websession.db"

    # Additional named databases that may host their own session tables,
    # e.g. EXTRA_DATABASES='{"audit": "postgresql://..."}'
    extra_databases: Dict[str, str] = Field(default_factory=dict)

    # Session table configuration
    session_table_name: str = DEFAULT_TABLE_NAME
    # Create the session table (checkfirst) the first time a store is provided
    session_auto_create: bool = False
    # Cookie the web layer stores the session key in
    session_cookie_name: str = "websession"

    # Logging
    structured_logging: bool = False
    log_dir: Optional[str] = "logs"


# Global settings instance
settings = Settings()
