"""Server-side session storage.

Each session is one row in the session table, addressed by an opaque key
issued here. The store keeps no state between calls besides the database
registry, so one instance may serve any number of concurrent requests.
"""
from __future__ import annotations

import base64
import logging
import secrets
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from websession.core.exceptions import SessionKeyConflictError, SessionStorageError
from websession.core.logging_config import log_session_event
from websession.core.schemas.session import SessionRecord
from websession.db.models.session_record import SessionSchema
from websession.db.session import DatabaseID, DatabaseRegistry

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 32


def generate_session_id() -> str:
    """Return a new session key: 32 random bytes, URL-safe base64 (44 chars)."""
    return base64.urlsafe_b64encode(secrets.token_bytes(SESSION_ID_BYTES)).decode("ascii")


def _require_mapping(data: Any) -> Dict[str, Any]:
    if not isinstance(data, Mapping):
        raise TypeError(f"Session data must be a mapping, got {type(data).__name__}")
    return dict(data)


class DatabaseSessions:
    """
    Session driver backed by a relational table.

    Args:
        registry: Database engines to run against
        database_id: Which registered database hosts the table; ``None`` is the default
        schema: Session table definition; defaults to the standard table name
    """

    def __init__(
        self,
        registry: DatabaseRegistry,
        database_id: DatabaseID = None,
        schema: Optional[SessionSchema] = None,
    ) -> None:
        self.registry = registry
        self.database_id = database_id
        self.schema = schema or SessionSchema()

    @property
    def table(self):
        return self.schema.table

    def generate_id(self) -> str:
        return generate_session_id()

    def create_session(self, data: Mapping, client_ip: Optional[str] = None) -> str:
        """
        Store a new session and return its key.

        A key collision is retried once with a fresh key; a second
        collision is raised.

        Args:
            data: The session payload
            client_ip: Optional client address kept for diagnostics

        Returns:
            The new session key

        Raises:
            SessionKeyConflictError: If two generated keys in a row collided
            SessionStorageError: If the insert failed
        """
        payload = _require_mapping(data)
        try:
            session_id = self._insert(payload, client_ip)
        except SessionKeyConflictError:
            logger.warning("Session key collision on %s, retrying with a fresh key", self.schema.name)
            session_id = self._insert(payload, client_ip)

        log_session_event(
            "session_created", "Session created",
            database_id=self.database_id, table=self.schema.name,
        )
        return session_id

    def read_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Retrieve the payload for the given key, or None if there is no such session."""
        with self.registry.session(self.database_id) as db:
            try:
                return db.scalar(
                    select(self.table.c.data).where(self.table.c.key == session_id)
                )
            except SQLAlchemyError as e:
                raise self._storage_error("read", e) from e

    def get_record(self, session_id: str) -> Optional[SessionRecord]:
        """Retrieve the full stored row for the given key."""
        with self.registry.session(self.database_id) as db:
            try:
                row = db.execute(
                    select(self.table).where(self.table.c.key == session_id)
                ).first()
            except SQLAlchemyError as e:
                raise self._storage_error("read", e) from e
        if row is None:
            return None
        return SessionRecord.model_validate(dict(row._mapping))

    def update_session(self, session_id: str, data: Mapping) -> bool:
        """
        Replace the payload of an existing session.

        Never creates a session.

        Returns:
            True if the session was updated, False if no session has this key
        """
        payload = _require_mapping(data)
        rowcount = self._write(
            "update",
            update(self.table).where(self.table.c.key == session_id).values(data=payload),
        )
        if rowcount == 0:
            logger.debug("Update for unknown session on %s", self.schema.name)
        return rowcount > 0

    def delete_session(self, session_id: str) -> None:
        """Remove the session for the given key. Unknown keys are ignored."""
        rowcount = self._write(
            "delete", delete(self.table).where(self.table.c.key == session_id)
        )
        if rowcount:
            log_session_event(
                "session_deleted", "Session deleted",
                database_id=self.database_id, table=self.schema.name,
            )

    def purge_stale(self, modified_before: datetime) -> int:
        """
        Delete every session not modified since ``modified_before``.

        The store never expires sessions on its own; this is the hook for
        a periodic sweep.

        Returns:
            Number of sessions removed
        """
        rowcount = self._write(
            "purge", delete(self.table).where(self.table.c.modified < modified_before)
        )
        if rowcount:
            log_session_event(
                "sessions_purged", f"Purged {rowcount} stale sessions",
                database_id=self.database_id, table=self.schema.name, level=logging.INFO,
            )
        return rowcount

    def _insert(self, payload: Dict[str, Any], client_ip: Optional[str]) -> str:
        session_id = self.generate_id()
        self._write(
            "insert",
            insert(self.table).values(key=session_id, data=payload, clientip=client_ip),
        )
        return session_id

    def _write(self, operation: str, statement) -> int:
        with self.registry.session(self.database_id) as db:
            try:
                rowcount = db.execute(statement).rowcount
                db.commit()
                return rowcount
            except IntegrityError as e:
                db.rollback()
                logger.error(f"Session {operation} on {self.schema.name} violated a constraint: {e.orig}")
                raise SessionKeyConflictError(
                    f"Session key already exists in {self.schema.name}"
                ) from e
            except SQLAlchemyError as e:
                db.rollback()
                raise self._storage_error(operation, e) from e

    def _storage_error(self, operation: str, error: SQLAlchemyError) -> SessionStorageError:
        logger.error(f"Session {operation} on {self.schema.name} failed: {error}", extra={
            "error_type": type(error).__name__,
            "database_id": self.database_id or "default",
        })
        return SessionStorageError(f"Session {operation} failed: {error}")
