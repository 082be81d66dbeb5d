"""Common Pydantic schemas shared across the API."""

from typing import Any, Dict, Generic, List, Optional, TypeVar
from pydantic import BaseModel, Field


T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated response wrapper."""

    items: List[T] = Field(description="List of items for this page")
    total: int = Field(ge=0, description="Total number of items across all pages")
    page: int = Field(ge=1, description="Current page number")
    limit: int = Field(ge=1, description="Items per page")
    total_pages: int = Field(ge=0, description="Total number of pages")

    @classmethod
    def from_listing(cls, listing: Dict[str, Any]) -> "PaginatedResponse[T]":
        """Create a paginated response from a service listing."""
        limit = listing["limit"]
        return cls(
            items=listing["items"],
            total=listing["total"],
            page=listing["page"],
            limit=limit,
            total_pages=(listing["total"] + limit - 1) // limit,
        )


class ProposalSummary(BaseModel):
    """Counts of proposals by what the caller has to do."""

    actionable_count: int = Field(ge=0, description="Proposals the caller can act on")
    waiting_count: int = Field(ge=0, description="Proposals waiting on another party")
    urgent_count: int = Field(ge=0, description="Proposals due within the urgent window")
    overdue_count: int = Field(ge=0, description="Proposals past their due date")


class ProposalPage(PaginatedResponse[Dict[str, Any]]):
    """Proposal listing with summary counts."""

    summary: ProposalSummary

    @classmethod
    def from_listing(cls, listing: Dict[str, Any]) -> "ProposalPage":
        limit = listing["limit"]
        return cls(
            items=listing["items"],
            total=listing["total"],
            page=listing["page"],
            limit=limit,
            total_pages=(listing["total"] + limit - 1) // limit,
            summary=ProposalSummary(**listing["summary"]),
        )


class ErrorDetail(BaseModel):
    """Error body."""

    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human readable message")
    path: Optional[str] = Field(None, description="Request path")
    method: Optional[str] = Field(None, description="Request method")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: ErrorDetail
