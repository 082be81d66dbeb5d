"""
Application workflow endpoints.

Create proposals, move them through the pipeline, accept them on behalf of a
company and read their audit history.
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
from api.schemas.applications import ApplicationCreate, StageTransition
from api.schemas.common import ErrorResponse, PaginatedResponse
from api.services import applications as application_service
from api.services.listings import list_entities
from core.access.capabilities import CapabilitySet
from core.access.scoping import EntityKind, ListingFilters, Paging
from core.events import EventPublisher
from database.engine import get_db, get_session_factory
from database.models.applications import ApplicationStage

router = APIRouter()

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.get(
    "",
    response_model=PaginatedResponse[Dict[str, Any]],
    summary="List Applications",
    description="List the applications visible to the caller.",
)
async def list_applications(
    stage: Optional[ApplicationStage] = Query(None, description="Filter by stage"),
    job_id: Optional[int] = Query(None, description="Filter by job"),
    candidate_id: Optional[int] = Query(None, description="Filter by candidate"),
    filters: ListingFilters = Depends(get_listing_filters),
    paging: Paging = Depends(get_paging),
    capabilities: CapabilitySet = Depends(get_capabilities),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    filters.equals.update({"stage": stage, "job_id": job_id, "candidate_id": candidate_id})
    listing = await list_entities(
        session_factory, capabilities, EntityKind.APPLICATIONS, filters, paging
    )
    return PaginatedResponse.from_listing(listing)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create Application",
    description=(
        "Propose a candidate for a job. Recruiters must be able to work the "
        "candidate; candidates may start a draft for themselves."
    ),
    responses=ERROR_RESPONSES,
)
async def create_application(
    payload: ApplicationCreate,
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    return await application_service.create_application(
        db,
        capabilities,
        job_id=payload.job_id,
        candidate_id=payload.candidate_id,
        notes=payload.notes,
        action_due_date=payload.action_due_date,
        expires_at=payload.expires_at,
        publisher=publisher,
    )


@router.get(
    "/{application_id}",
    summary="Get Application Details",
    responses=ERROR_RESPONSES,
)
async def get_application(
    application_id: int = Path(..., description="Application ID"),
    capabilities: CapabilitySet = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    return await application_service.get_application(db, application_id, capabilities)


@router.post(
    "/{application_id}/transition",
    summary="Move Application Stage",
    description="Move an application to another stage of the pipeline.",
    responses=ERROR_RESPONSES,
)
async def transition_application(
    payload: StageTransition,
    application_id: int = Path(..., description="Application ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    return await application_service.transition(
        db,
        application_id,
        payload.stage,
        capabilities,
        notes=payload.notes,
        publisher=publisher,
    )


@router.post(
    "/{application_id}/accept",
    summary="Accept Application",
    description="Accept a proposal for the hiring company. Accepting twice is a no-op.",
    responses=ERROR_RESPONSES,
)
async def accept_application(
    application_id: int = Path(..., description="Application ID"),
    capabilities: CapabilitySet = Depends(require_capabilities),
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    return await application_service.accept_application(
        db, application_id, capabilities, publisher=publisher
    )


@router.get(
    "/{application_id}/history",
    summary="Get Application History",
    description="Audit trail of the application, newest first.",
    responses=ERROR_RESPONSES,
)
async def get_application_history(
    application_id: int = Path(..., description="Application ID"),
    capabilities: CapabilitySet = Depends(get_capabilities),
    db: AsyncSession = Depends(get_db),
):
    return await application_service.get_application_history(
        db, application_id, capabilities
    )
