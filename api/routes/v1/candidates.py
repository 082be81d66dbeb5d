"""
Candidate endpoints.

Profiles, sourcing ownership and outreach. Recruiter-only operations act as
the calling recruiter; the acting identity is never taken from the body.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import (
    get_capabilities,
    get_listing_filters,
    get_paging,
    get_publisher,
    require_capabilities,
)
from api.schemas.candidates import (
    CandidateUpdate,
    OutreachCreate,
    OutreachEngagement,
    SourcerNotesUpdate,
    SourcingClaim,
)
from api.schemas.common import ErrorResponse, PaginatedResponse
from api.services import candidates as candidate_service
from api.services import ownership as ownership_service
from api.services.listings import list_entities
from core.access.capabilities import CapabilitySet
from core.access.scoping import EntityKind, ListingFilters, Paging
from core.events import EventPublisher
from core.exceptions import Forbidden
from database.engine import get_db, get_session_factory
from database.models.candidates import SourcerType

router = APIRouter()

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _acting_sourcer(capabilities: CapabilitySet) -> tuple[int, SourcerType]:
    """The identity a sourcing action is recorded under."""
    if capabilities.is_recruiter:
        return capabilities.recruiter_id, SourcerType.RECRUITER
    if capabilities.is_platform_admin:
        return capabilities.user_id, SourcerType.PLATFORM
    raise Forbidden("Only recruiters or platform admins can source candidates")


def _require_recruiter(capabilities: CapabilitySet) -> int:
    if not capabilities.is_recruiter:
        raise Forbidden("Only active recruiters can perform this action")
    return capabilities.recruiter_id


@router.get(
    "",
    response_model=PaginatedResponse[Dict[str, Any]],
    summary="List Candidates",
    description="List the candidates visible to the caller. Company viewers see masked profiles.",
)
async def list_candidates(
    location: Optional[str] = Query(None, description="Filter by location"),
    filters: ListingFilters = Depends(get_listing_filters),
    paging: Paging = Depends(get_paging),
    capabilities: CapabilitySet = Depends(get_capabilities),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    filters.equals["location"] = location
    listing = await list_entities(
        session_factory, capabilities, EntityKind.CANDIDATES, filters, paging
    )
    return PaginatedResponse.from_listing(listing)


@router.get(
    "/{candidate_id}",
    summary="Get Candidate",
    responses=ERROR_RESPONSES,
)
async def get_candidate(
    candidate_id: int = Path(..., description="Candidate ID"),
    capabilities: CapabilitySet = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    return await candidate_service.get_candidate(db, candidate_id, capabilities)


@router.patch(
    "/{candidate_id}",
    summary="Update Candidate",
    description="Update profile fields. Recruiters are blocked while another recruiter's claim is protected.",
    responses=ERROR_RESPONSES,
)
async def update_candidate(
    payload: CandidateUpdate,
    candidate_id: int = Path(..., description="Candidate ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
):
    updates = payload.model_dump(mode="json", exclude_unset=True)
    return await candidate_service.update_candidate(db, capabilities, candidate_id, updates)


# ==================== Sourcing ===================== #
@router.get(
    "/{candidate_id}/sourcer",
    summary="Get Candidate Sourcer",
    description="Current sourcing claim, or null when the candidate is unclaimed.",
    responses=ERROR_RESPONSES,
)
async def get_candidate_sourcer(
    candidate_id: int = Path(..., description="Candidate ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
):
    return await ownership_service.get_candidate_sourcer(db, candidate_id)


@router.post(
    "/{candidate_id}/sourcer",
    status_code=status.HTTP_201_CREATED,
    summary="Claim Candidate",
    description="Claim a candidate for the caller. Fails with 409 while another claim is protected.",
    responses=ERROR_RESPONSES,
)
async def establish_ownership(
    payload: SourcingClaim,
    candidate_id: int = Path(..., description="Candidate ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    sourcer_id, sourcer_type = _acting_sourcer(capabilities)
    return await ownership_service.establish_ownership(
        db,
        candidate_id,
        sourcer_id,
        sourcer_type,
        window_days=payload.protection_window_days,
        notes=payload.notes,
        publisher=publisher,
    )


@router.patch(
    "/{candidate_id}/sourcer/notes",
    summary="Update Sourcing Notes",
    responses=ERROR_RESPONSES,
)
async def update_sourcer_notes(
    payload: SourcerNotesUpdate,
    candidate_id: int = Path(..., description="Candidate ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
):
    sourcer_id, sourcer_type = _acting_sourcer(capabilities)
    return await ownership_service.update_sourcer_notes(
        db, candidate_id, sourcer_id, payload.notes, sourcer_type
    )


@router.get(
    "/{candidate_id}/can-work",
    summary="Check Candidate Availability",
    description="Whether a recruiter may work the candidate. Defaults to the calling recruiter.",
    responses=ERROR_RESPONSES,
)
async def check_can_work(
    candidate_id: int = Path(..., description="Candidate ID"),
    recruiter_id: Optional[int] = Query(
        None, description="Recruiter to check; platform admins only"
    ),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
):
    if recruiter_id is None or recruiter_id == capabilities.recruiter_id:
        recruiter_id = _require_recruiter(capabilities)
    elif not capabilities.is_platform_admin:
        raise Forbidden("Only platform admins can check other recruiters")

    can_work = await ownership_service.check_can_work(db, candidate_id, recruiter_id)
    return {"candidate_id": candidate_id, "recruiter_id": recruiter_id, "can_work": can_work}


# ==================== Outreach ===================== #
@router.post(
    "/{candidate_id}/outreach",
    status_code=status.HTTP_201_CREATED,
    summary="Record Outreach",
    description="Record an outreach email. The first outreach to an unclaimed candidate claims them.",
    responses=ERROR_RESPONSES,
)
async def record_outreach(
    payload: OutreachCreate,
    candidate_id: int = Path(..., description="Candidate ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    recruiter_id = _require_recruiter(capabilities)
    return await ownership_service.record_outreach(
        db,
        candidate_id,
        recruiter_id,
        subject=payload.subject,
        body=payload.body,
        job_id=payload.job_id,
        publisher=publisher,
    )


@router.get(
    "/{candidate_id}/outreach",
    summary="List Outreach",
    description="Outreach sent to the candidate. Recruiters see their own; admins see all.",
    responses=ERROR_RESPONSES,
)
async def list_outreach(
    candidate_id: int = Path(..., description="Candidate ID"),
    job_id: Optional[int] = Query(None, description="Filter by job"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
):
    recruiter_id = None
    if not capabilities.is_platform_admin:
        recruiter_id = _require_recruiter(capabilities)
    return await ownership_service.list_outreach(
        db, candidate_id=candidate_id, recruiter_actor_id=recruiter_id, job_id=job_id
    )


@router.post(
    "/outreach/{outreach_id}/events",
    summary="Record Outreach Engagement",
    description="Record an open, click, reply, bounce or unsubscribe. The first report wins.",
    responses=ERROR_RESPONSES,
)
async def record_outreach_engagement(
    payload: OutreachEngagement,
    outreach_id: int = Path(..., description="Outreach ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
):
    if not capabilities.is_platform_admin:
        raise Forbidden("Only the platform can report outreach engagement")
    return await ownership_service.record_outreach_engagement(
        db, outreach_id, payload.event, occurred_at=payload.occurred_at
    )
