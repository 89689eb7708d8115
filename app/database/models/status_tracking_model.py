from beanie import Document, Indexed
from pydantic import Field
from datetime import datetime
from typing import Optional


class StatusTracking(Document):
    """Append-only audit row written on every document status change."""
    document_id: Indexed(str) = Field(..., description="Notarization document the row belongs to")
    status: str = Field(..., description="Status the document moved into")
    actor_id: Optional[str] = Field(None, description="Identifier of the actor who caused the change")
    actor_role: Optional[str] = Field(None, description="Role the actor acted under")
    feedback: Optional[str] = Field(None, description="Rejection feedback, if any")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="When the change was recorded")

    class Settings:
        name = "status_tracking"

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}
