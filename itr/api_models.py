from __future__ import annotations

from pydantic import BaseModel, Field

from .models import UpdateOutcome


class StatusResponse(BaseModel):
    repository: str
    manifest_path: str
    running: bool = Field(..., description="True while a run holds the run lock")
    schedule_interval_s: int = Field(0, ge=0, description="0 when the scheduler is disabled")
    last_outcome: UpdateOutcome | None = None
    last_error: str | None = None


class EventItem(BaseModel):
    id: int
    ts: str
    level: str
    repository: str | None = None
    version: str | None = None
    message: str
