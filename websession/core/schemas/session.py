"""Session record schema definitions."""
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionRecord(BaseModel):
    """Schema for a stored session row"""

    id: uuid.UUID = Field(..., description="Row identity, independent of the session key")
    key: str = Field(..., description="Session identifier presented by the client")
    data: Dict[str, Any] = Field(default_factory=dict, description="Session payload")
    clientip: Optional[str] = Field(None, description="Client IP address")
    created: datetime = Field(..., description="When the session row was created")
    modified: datetime = Field(..., description="The last time the session row was updated")

    model_config = ConfigDict(from_attributes=True)
