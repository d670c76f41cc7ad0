from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class Session(BaseModel):
    id: UUID = Field(description="Session unique identifier")
    session_key: str = Field(description="External key the session was created under")
    name: str | None = Field(default=None, description="Display label")
    project_path: str | None = Field(default=None, description="Project the session works on")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")
    last_activity_at: datetime = Field(description="Last task or attachment change")

    model_config = {"from_attributes": True}


class SessionUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255, description="Display label")
    project_path: str | None = Field(
        default=None, max_length=1024, description="Project the session works on"
    )


class SessionEnvelope(BaseModel):
    session: Session


class SessionList(BaseModel):
    sessions: list[Session] = Field(description="Sessions, most recently active first")
