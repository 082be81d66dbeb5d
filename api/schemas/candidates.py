"""Candidate-related Pydantic schemas."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator

from database.models.candidates import OutreachEvent


class CandidateUpdate(BaseModel):
    """Schema for updating a candidate. Only fields that are set are written."""

    full_name: Optional[str] = Field(None, min_length=1, max_length=255, description="Full name")
    email: Optional[EmailStr] = Field(None, description="Candidate email")
    phone: Optional[str] = Field(None, max_length=50, description="Phone number")
    location: Optional[str] = Field(None, max_length=255, description="Location")
    current_title: Optional[str] = Field(None, max_length=255, description="Current job title")
    current_company: Optional[str] = Field(None, max_length=255, description="Current employer")
    linkedin_url: Optional[HttpUrl] = Field(None, description="LinkedIn URL")
    github_url: Optional[HttpUrl] = Field(None, description="GitHub URL")
    portfolio_url: Optional[HttpUrl] = Field(None, description="Portfolio URL")

    @field_validator("full_name", mode="before")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Strip whitespace from the name."""
        if isinstance(v, str):
            return v.strip()
        return v


class SourcingClaim(BaseModel):
    """Claim a candidate for the calling recruiter."""

    protection_window_days: Optional[int] = Field(
        None, ge=1, le=3650, description="Days the claim is protected; platform default if omitted"
    )
    notes: Optional[str] = Field(None, max_length=5000, description="Sourcing notes")


class SourcerNotesUpdate(BaseModel):
    notes: Optional[str] = Field(None, max_length=5000, description="Sourcing notes")


class OutreachCreate(BaseModel):
    """Outreach email sent to a candidate."""

    subject: str = Field(min_length=1, max_length=500, description="Email subject")
    body: str = Field(min_length=1, description="Email body")
    job_id: Optional[int] = Field(None, description="Job the outreach is about")


class OutreachEngagement(BaseModel):
    """Engagement reported by the mail provider."""

    event: OutreachEvent = Field(description="Engagement event")
    occurred_at: Optional[datetime] = Field(None, description="When it happened; now if omitted")
