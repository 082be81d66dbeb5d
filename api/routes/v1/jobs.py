"""Job listing endpoints."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_capabilities, get_listing_filters, get_paging
from api.schemas.common import PaginatedResponse
from api.services.listings import list_entities
from core.access.capabilities import CapabilitySet
from core.access.scoping import EntityKind, ListingFilters, Paging
from database.engine import get_session_factory
from database.models.jobs import JobStatus

router = APIRouter()


@router.get(
    "",
    response_model=PaginatedResponse[Dict[str, Any]],
    summary="List Jobs",
    description="Recruiters see jobs assigned to them; company members see their organization's jobs.",
)
async def list_jobs(
    job_status: Optional[JobStatus] = Query(None, alias="status", description="Filter by status"),
    company_id: Optional[int] = Query(None, description="Filter by company"),
    filters: ListingFilters = Depends(get_listing_filters),
    paging: Paging = Depends(get_paging),
    capabilities: CapabilitySet = Depends(get_capabilities),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    filters.equals.update({"status": job_status, "company_id": company_id})
    listing = await list_entities(session_factory, capabilities, EntityKind.JOBS, filters, paging)
    return PaginatedResponse.from_listing(listing)
