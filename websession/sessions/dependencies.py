from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request

from websession.core.config import settings
from websession.db.models.session_record import SessionSchema
from websession.db.session import DatabaseID, DatabaseRegistry, registry_from_settings

from .store import DatabaseSessions

logger = logging.getLogger(__name__)

_REGISTRY: Optional[DatabaseRegistry] = None
_SCHEMAS: Dict[str, SessionSchema] = {}
_PREPARED: set[Tuple[DatabaseID, str]] = set()
_PREPARE_LOCK = threading.Lock()


def get_session_registry() -> DatabaseRegistry:
    """Create the database registry from configuration on first use."""
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = registry_from_settings(settings)
        logger.info("Initialised session databases: %s", [db_id or "default" for db_id in _REGISTRY.database_ids])
    return _REGISTRY


def set_session_registry(registry: Optional[DatabaseRegistry]) -> None:
    global _REGISTRY
    _REGISTRY = registry
    _PREPARED.clear()


def _schema_for(table_name: str) -> SessionSchema:
    schema = _SCHEMAS.get(table_name)
    if schema is None:
        schema = _SCHEMAS[table_name] = SessionSchema(table_name)
    return schema


def build_session_store(
    database_id: DatabaseID = None,
    table_name: Optional[str] = None,
) -> DatabaseSessions:
    """Build a store on the configured registry, creating its table if auto-create is on."""
    registry = get_session_registry()
    schema = _schema_for(table_name or settings.session_table_name)
    store = DatabaseSessions(registry, database_id=database_id, schema=schema)

    target = (database_id, schema.name)
    if settings.session_auto_create and target not in _PREPARED:
        with _PREPARE_LOCK:
            # Double-check after acquiring the lock
            if target not in _PREPARED:
                schema.prepare(registry.engine(database_id), checkfirst=True)
                _PREPARED.add(target)
    return store


def session_store_provider(
    database_id: DatabaseID = None,
    table_name: Optional[str] = None,
) -> Callable[[], DatabaseSessions]:
    """
    Return a FastAPI dependency yielding a session store for one database.

    Usage::

        audit_sessions = session_store_provider("audit")

        @app.get("/me")
        def me(store: DatabaseSessions = Depends(audit_sessions)): ...
    """

    def _get_session_store() -> DatabaseSessions:
        return build_session_store(database_id, table_name)

    return _get_session_store


get_session_store = session_store_provider()


def current_session_key(request: Request) -> Optional[str]:
    """Session key presented by the client in the session cookie, if any."""
    return request.cookies.get(settings.session_cookie_name) or None
