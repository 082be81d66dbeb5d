"""
Placement endpoints.

Hires, their lifecycle after the offer is accepted, and how the recruiter
fee is shared between collaborating recruiters.
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
from api.schemas.common import ErrorResponse, PaginatedResponse
from api.schemas.placements import (
    CollaboratorCreate,
    PlacementActivate,
    PlacementCreate,
    PlacementFail,
    SplitRecommendationRequest,
)
from api.services import collaborations as collaboration_service
from api.services import placements as placement_service
from api.services.listings import list_entities
from core.access.capabilities import CapabilitySet
from core.access.scoping import EntityKind, ListingFilters, Paging
from core.events import EventPublisher
from core.exceptions import Forbidden
from core.workflow.splits import SplitRole, calculate_splits, total_percentage
from database.engine import get_db, get_session_factory
from database.models.placements import PlacementState

router = APIRouter()

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.get(
    "",
    response_model=PaginatedResponse[Dict[str, Any]],
    summary="List Placements",
)
async def list_placements(
    state: Optional[PlacementState] = Query(None, description="Filter by state"),
    job_id: Optional[int] = Query(None, description="Filter by job"),
    filters: ListingFilters = Depends(get_listing_filters),
    paging: Paging = Depends(get_paging),
    capabilities: CapabilitySet = Depends(get_capabilities),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    filters.equals.update({"state": state, "job_id": job_id})
    listing = await list_entities(
        session_factory, capabilities, EntityKind.PLACEMENTS, filters, paging
    )
    return PaginatedResponse.from_listing(listing)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create Placement",
    description="Record a hire. An application at offer moves to hired; repeating the call returns the same placement.",
    responses=ERROR_RESPONSES,
)
async def create_placement(
    payload: PlacementCreate,
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    return await placement_service.create_placement(
        db, payload.application_id, payload.salary, capabilities, publisher=publisher
    )


@router.get(
    "/collaborations/mine",
    summary="List My Collaborations",
    description="Placement splits the calling recruiter takes part in.",
    responses=ERROR_RESPONSES,
)
async def list_my_collaborations(
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
):
    if not capabilities.is_recruiter:
        raise Forbidden("Only recruiters have collaborations")
    return await collaboration_service.find_collaborations_by_recruiter(
        db, capabilities.recruiter_id
    )


@router.post(
    "/splits/recommendation",
    summary="Recommend Fee Split",
    description="Advisory split of a recruiter share between contributing roles.",
)
async def recommend_split(
    payload: SplitRecommendationRequest,
    capabilities: CapabilitySet = Depends(require_capabilities),
):
    recommendations = calculate_splits(
        payload.total_share,
        [SplitRole(role=entry.role, weight=entry.weight) for entry in payload.roles],
    )
    return {
        "total_share": payload.total_share,
        "total_percentage": total_percentage(
            [recommendation.split_percentage for recommendation in recommendations]
        ),
        "splits": [recommendation.to_dict() for recommendation in recommendations],
    }


@router.get(
    "/{placement_id}",
    summary="Get Placement",
    responses=ERROR_RESPONSES,
)
async def get_placement(
    placement_id: int = Path(..., description="Placement ID"),
    capabilities: CapabilitySet = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    return await placement_service.get_placement(db, placement_id, capabilities)


@router.post(
    "/{placement_id}/activate",
    summary="Activate Placement",
    description="Mark the candidate as started. The guarantee period runs from the start date.",
    responses=ERROR_RESPONSES,
)
async def activate_placement(
    payload: PlacementActivate,
    placement_id: int = Path(..., description="Placement ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    return await placement_service.activate_placement(
        db, placement_id, payload.start_date, capabilities, publisher=publisher
    )


@router.post(
    "/{placement_id}/complete",
    summary="Complete Placement",
    responses=ERROR_RESPONSES,
)
async def complete_placement(
    placement_id: int = Path(..., description="Placement ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    return await placement_service.complete_placement(
        db, placement_id, capabilities, publisher=publisher
    )


@router.post(
    "/{placement_id}/fail",
    summary="Fail Placement",
    responses=ERROR_RESPONSES,
)
async def fail_placement(
    payload: PlacementFail,
    placement_id: int = Path(..., description="Placement ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    return await placement_service.fail_placement(
        db, placement_id, payload.reason, capabilities, publisher=publisher
    )


# ==================== Collaborators ===================== #
@router.get(
    "/{placement_id}/collaborators",
    summary="List Collaborators",
    responses=ERROR_RESPONSES,
)
async def list_collaborators(
    placement_id: int = Path(..., description="Placement ID"),
    capabilities: CapabilitySet = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    await placement_service.get_placement(db, placement_id, capabilities)
    return await collaboration_service.list_collaborators(db, placement_id)


@router.post(
    "/{placement_id}/collaborators",
    status_code=status.HTTP_201_CREATED,
    summary="Add Collaborator",
    description="Add a recruiter to the fee split. Fails with 422 if the splits would exceed 100%.",
    responses=ERROR_RESPONSES,
)
async def add_collaborator(
    payload: CollaboratorCreate,
    placement_id: int = Path(..., description="Placement ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    await placement_service.ensure_can_manage_placement(db, capabilities, placement_id)
    return await collaboration_service.add_collaborator(
        db,
        placement_id,
        payload.recruiter_actor_id,
        payload.role,
        payload.split_percentage,
        payload.split_amount,
        notes=payload.notes,
        publisher=publisher,
    )
