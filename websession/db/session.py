import functools
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Optional, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

DatabaseID = Optional[str]


# Determine database-specific connection arguments
def get_connect_args(url: str) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if url.startswith("sqlite"):
        # SQLite needs check_same_thread=False when sessions cross threads
        return {"check_same_thread": False}
    # PostgreSQL and other databases don't need special args
    return {}


def ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-based SQLite database"""
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


class DatabaseRegistry:
    """Named database engines and their session factories.

    The database registered under ``None`` is the default. Session stores
    pick one by id, so several databases can each host an independent
    session table.
    """

    def __init__(self) -> None:
        self._engines: Dict[DatabaseID, Engine] = {}
        self._factories: Dict[DatabaseID, sessionmaker] = {}

    def register(self, database_id: DatabaseID, bind: Union[str, Engine]) -> Engine:
        """Register an engine (or a URL to build one from) under ``database_id``."""
        if isinstance(bind, str):
            ensure_sqlite_directory(bind)
            # Sorted keys: an equal payload always serializes to the same text,
            # which the SQLite change trigger compares
            engine = create_engine(
                bind,
                connect_args=get_connect_args(bind),
                json_serializer=functools.partial(json.dumps, sort_keys=True),
            )
        else:
            engine = bind
        if database_id in self._engines:
            logger.warning("Replacing database registration for %s", database_id or "default")
        self._engines[database_id] = engine
        self._factories[database_id] = sessionmaker(
            autocommit=False, autoflush=False, bind=engine
        )
        return engine

    def engine(self, database_id: DatabaseID = None) -> Engine:
        try:
            return self._engines[database_id]
        except KeyError:
            raise LookupError(f"No database registered for id {database_id!r}") from None

    def __contains__(self, database_id: DatabaseID) -> bool:
        return database_id in self._engines

    @property
    def database_ids(self) -> list:
        return list(self._engines)

    @contextmanager
    def session(self, database_id: DatabaseID = None) -> Generator[Session, None, None]:
        """Get a DB session for one unit of work with proper resource management"""
        self.engine(database_id)
        db = self._factories[database_id]()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        """Release pooled connections of every registered engine"""
        for engine in self._engines.values():
            engine.dispose()


def registry_from_settings(settings) -> DatabaseRegistry:
    """Build a registry holding the default database and any extra databases."""
    registry = DatabaseRegistry()
    registry.register(None, settings.database_url)
    for database_id, url in settings.extra_databases.items():
        registry.register(database_id, url)
    return registry
