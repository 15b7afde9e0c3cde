"""Database-backed web session storage."""

__version__ = "1.0.0"
