"""Session store, authenticator and framework dependencies."""

from .authenticator import ModelPrincipalLookup, SessionAuthenticator, session_id_for
from .store import DatabaseSessions, generate_session_id

__all__ = [
    "DatabaseSessions",
    "ModelPrincipalLookup",
    "SessionAuthenticator",
    "generate_session_id",
    "session_id_for",
]
