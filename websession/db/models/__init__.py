"""Database models"""

from websession.db.models.session_record import SessionSchema

__all__ = ["SessionSchema"]
