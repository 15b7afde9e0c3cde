"""Pydantic read models."""

from websession.core.schemas.session import SessionRecord

__all__ = ["SessionRecord"]
