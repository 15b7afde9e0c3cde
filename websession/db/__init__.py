"""Database engines, metadata and the session table schema."""
