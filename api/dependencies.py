"""FastAPI dependencies for dependency injection."""

from datetime import datetime
from typing import Optional
from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.access.capabilities import CapabilitySet
from core.access.identity import IdentityDirectory, SqlIdentityDirectory
from core.access.resolver import resolve_capabilities
from core.access.scoping import ListingFilters, Paging
from core.config import settings
from core.events import EventPublisher, get_event_publisher
from core.utils.datetime import ensure_aware
from database.engine import get_session_factory


async def get_identity_directory(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> IdentityDirectory:
    """Identity lookups backed by the marketplace tables."""
    return SqlIdentityDirectory(session_factory)


def _organization_hint(request: Request) -> Optional[int]:
    raw = request.headers.get(settings.organization_header)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{settings.organization_header} must be an integer",
        ) from None


async def get_capabilities(
    request: Request,
    directory: IdentityDirectory = Depends(get_identity_directory),
) -> CapabilitySet:
    """
    Resolve the caller's capabilities from the gateway headers.

    A missing or unknown caller resolves to the empty capability set;
    listings then return nothing and single-entity reads are forbidden.
    """
    caller_id = request.headers.get(settings.caller_header)
    capabilities = await resolve_capabilities(
        directory, caller_id, _organization_hint(request)
    )
    request.state.user_id = capabilities.user_id
    return capabilities


async def require_capabilities(
    capabilities: CapabilitySet = Depends(get_capabilities),
) -> CapabilitySet:
    """Require a caller the platform knows."""
    if capabilities.user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown caller",
        )
    return capabilities


def get_publisher() -> EventPublisher:
    """Domain event publisher for the request."""
    return get_event_publisher()


def get_paging(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(
        settings.default_page_size,
        ge=1,
        description=f"Items per page, capped at {settings.max_page_size}",
    ),
    sort_by: str = Query("created_at", description="Sort column"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$", description="Sort direction"),
) -> Paging:
    return Paging(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)


def get_listing_filters(
    request: Request,
    search: Optional[str] = Query(None, description="Free text search"),
    organization_id: Optional[int] = Query(
        None,
        description="Narrow an admin listing to one organization; defaults to the organization header",
    ),
    created_after: Optional[datetime] = Query(None, description="Created at or after"),
    created_before: Optional[datetime] = Query(None, description="Created at or before"),
) -> ListingFilters:
    return ListingFilters(
        search=search,
        organization_id=(
            organization_id if organization_id is not None else _organization_hint(request)
        ),
        created_after=ensure_aware(created_after),
        created_before=ensure_aware(created_before),
    )
