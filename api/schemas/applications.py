"""Application-related Pydantic schemas."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from database.models.applications import ApplicationStage


class ApplicationCreate(BaseModel):
    """Propose a candidate for a job."""

    job_id: int = Field(description="Job ID")
    candidate_id: int = Field(description="Candidate ID")
    notes: Optional[str] = Field(None, max_length=5000, description="Notes for the company")
    action_due_date: Optional[datetime] = Field(None, description="When the next action is due")
    expires_at: Optional[datetime] = Field(None, description="When the proposal lapses")


class StageTransition(BaseModel):
    """Move an application to another stage."""

    stage: ApplicationStage = Field(description="Target stage")
    notes: Optional[str] = Field(None, max_length=5000, description="Reason for the move")
