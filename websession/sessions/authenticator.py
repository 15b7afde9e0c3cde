"""Resolve the principal behind a session.

The store does not know what a user is. A login writes the principal's id
into the session payload; later requests read it back and hand it to a
``PrincipalLookup``, normally a keyed fetch on the application's user model.
"""
import logging
from typing import Any, Generic, Optional, Protocol, Type, TypeVar

from websession.core.exceptions import SessionMisuseError
from websession.db.session import DatabaseID, DatabaseRegistry
from websession.sessions.store import DatabaseSessions

logger = logging.getLogger(__name__)

P = TypeVar("P")

PRINCIPAL_KEY = "_principal_id"


class PrincipalLookup(Protocol[P]):
    """Fetch a principal by the id stored in its session"""

    def find(self, principal_id: Any) -> Optional[P]:
        ...


def session_id_for(principal: Any) -> Any:
    """
    Return the id a principal is stored under in a session.

    Raises:
        SessionMisuseError: If the principal has not been persisted yet
    """
    principal_id = getattr(principal, "id", None)
    if principal_id is None:
        raise SessionMisuseError(
            f"Cannot persist unsaved {type(principal).__name__} to session"
        )
    return principal_id


class ModelPrincipalLookup(Generic[P]):
    """Principal lookup by primary key on a SQLAlchemy mapped model"""

    def __init__(self, model: Type[P], registry: DatabaseRegistry, database_id: DatabaseID = None) -> None:
        self.model = model
        self.registry = registry
        self.database_id = database_id

    def find(self, principal_id: Any) -> Optional[P]:
        with self.registry.session(self.database_id) as db:
            principal = db.get(self.model, principal_id)
            if principal is not None:
                db.expunge(principal)
            return principal


class SessionAuthenticator(Generic[P]):
    """
    Log principals in and out of sessions and resolve them per request.

    Args:
        store: Session store holding the sessions
        lookup: Resolves a stored principal id to a principal
        principal_key: Payload entry holding the principal id
    """

    def __init__(
        self,
        store: DatabaseSessions,
        lookup: PrincipalLookup[P],
        principal_key: str = PRINCIPAL_KEY,
    ) -> None:
        self.store = store
        self.lookup = lookup
        self.principal_key = principal_key

    def login(self, session_id: str, principal: P) -> bool:
        """
        Record ``principal`` in an existing session.

        Returns:
            False if the session does not exist
        """
        principal_id = session_id_for(principal)
        data = self.store.read_session(session_id)
        if data is None:
            return False
        data[self.principal_key] = principal_id
        return self.store.update_session(session_id, data)

    def logout(self, session_id: str) -> None:
        data = self.store.read_session(session_id)
        if data is None or self.principal_key not in data:
            return
        del data[self.principal_key]
        self.store.update_session(session_id, data)

    def authenticate(self, session_id: Optional[str]) -> Optional[P]:
        """Return the principal for a session, or None for anonymous requests."""
        if not session_id:
            return None
        data = self.store.read_session(session_id)
        if not data or data.get(self.principal_key) is None:
            return None
        principal = self.lookup.find(data[self.principal_key])
        if principal is None:
            logger.info("Session references a principal that no longer exists")
        return principal
