"""Company listing endpoints."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_capabilities, get_listing_filters, get_paging
from api.schemas.common import PaginatedResponse
from api.services.listings import list_entities
from core.access.capabilities import CapabilitySet
from core.access.scoping import EntityKind, ListingFilters, Paging
from database.engine import get_session_factory

router = APIRouter()


@router.get(
    "",
    response_model=PaginatedResponse[Dict[str, Any]],
    summary="List Companies",
)
async def list_companies(
    industry: Optional[str] = Query(None, description="Filter by industry"),
    filters: ListingFilters = Depends(get_listing_filters),
    paging: Paging = Depends(get_paging),
    capabilities: CapabilitySet = Depends(get_capabilities),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    filters.equals["industry"] = industry
    listing = await list_entities(
        session_factory, capabilities, EntityKind.COMPANIES, filters, paging
    )
    return PaginatedResponse.from_listing(listing)
