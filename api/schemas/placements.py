"""Placement and collaboration Pydantic schemas."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from database.models.placements import CollaboratorRole


class PlacementCreate(BaseModel):
    """Record a hire."""

    application_id: int = Field(description="Application that led to the hire")
    salary: float = Field(gt=0, description="Annual salary")


class PlacementActivate(BaseModel):
    start_date: datetime = Field(description="Candidate's first day")


class PlacementFail(BaseModel):
    reason: str = Field(min_length=1, max_length=2000, description="Why the hire fell through")


class CollaboratorCreate(BaseModel):
    """Add a recruiter to a placement's fee split."""

    recruiter_actor_id: int = Field(description="Recruiter receiving the split")
    role: CollaboratorRole = Field(description="Contribution to the placement")
    split_percentage: float = Field(gt=0, le=100, description="Share of the recruiter fee")
    split_amount: float = Field(ge=0, description="Amount paid for the share")
    notes: Optional[str] = Field(None, max_length=2000, description="Notes")


class SplitRoleInput(BaseModel):
    role: CollaboratorRole
    weight: Optional[float] = Field(None, ge=0, description="Custom weight; role default if omitted")


class SplitRecommendationRequest(BaseModel):
    """Roles to recommend a fee split for."""

    total_share: float = Field(ge=0, description="Amount to split")
    roles: List[SplitRoleInput] = Field(description="Contributing roles")

    @field_validator("roles")
    @classmethod
    def validate_roles(cls, v: List[SplitRoleInput]) -> List[SplitRoleInput]:
        if not v:
            raise ValueError("At least one role is required")
        return v
