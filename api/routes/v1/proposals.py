"""
Proposal endpoints.

Applications seen from the caller's side of the marketplace: who has to act
next, how urgent it is and what to show.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_capabilities, get_listing_filters, get_paging
from api.schemas.common import ErrorResponse, ProposalPage
from api.services import proposals as proposal_service
from core.access.capabilities import CapabilitySet
from core.access.scoping import ListingFilters, Paging
from database.engine import get_db, get_session_factory
from database.models.applications import ApplicationStage

router = APIRouter()


@router.get(
    "",
    response_model=ProposalPage,
    summary="List Proposals",
    description="Proposals visible to the caller with counts of actionable, waiting, urgent and overdue items.",
)
async def list_proposals(
    stage: Optional[ApplicationStage] = Query(None, description="Filter by stage"),
    job_id: Optional[int] = Query(None, description="Filter by job"),
    filters: ListingFilters = Depends(get_listing_filters),
    paging: Paging = Depends(get_paging),
    capabilities: CapabilitySet = Depends(get_capabilities),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    filters.equals.update({"stage": stage, "job_id": job_id})
    listing = await proposal_service.list_proposals(
        session_factory, capabilities, filters, paging
    )
    return ProposalPage.from_listing(listing)


@router.get(
    "/{application_id}",
    summary="Get Proposal",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_proposal(
    application_id: int = Path(..., description="Application ID"),
    capabilities: CapabilitySet = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    return await proposal_service.get_proposal(db, application_id, capabilities)
