"""
Scoped listings for every entity kind.

Thin layer over ``core.access.scoping.scope`` that serializes rows and masks
candidates for company viewers.
"""

from typing import Any, Callable, Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.services.applications import application_to_dict
from api.services.placements import placement_to_dict
from core.access.capabilities import CapabilityKind, CapabilitySet, select_listing_capability
from core.access.scoping import EntityKind, ListingFilters, Paging, scope
from core.utils.datetime import to_iso
from core.workflow.masking import mask_candidate, serialize_candidate
from database.models.applications import Application
from database.models.jobs import Job, JobStatus
from database.models.organizations import Company

logger = logging.getLogger(__name__)


def job_to_dict(job: Job) -> Dict[str, Any]:
    return {
        "id": job.id,
        "company_id": job.company_id,
        "title": job.title,
        "description": job.description,
        "location": job.location,
        "status": JobStatus(job.status).value,
        "fee_percentage": job.fee_percentage,
        "guarantee_days": job.guarantee_days,
        "created_at": to_iso(job.created_at),
        "updated_at": to_iso(job.updated_at),
    }


def company_to_dict(company: Company) -> Dict[str, Any]:
    return {
        "id": company.id,
        "organization_id": company.organization_id,
        "name": company.name,
        "website": company.website,
        "industry": company.industry,
        "created_at": to_iso(company.created_at),
    }


SERIALIZERS: Dict[EntityKind, Callable[[Any], Dict[str, Any]]] = {
    EntityKind.JOBS: job_to_dict,
    EntityKind.CANDIDATES: serialize_candidate,
    EntityKind.APPLICATIONS: application_to_dict,
    EntityKind.COMPANIES: company_to_dict,
    EntityKind.PLACEMENTS: placement_to_dict,
}


async def _accepted_candidate_ids(
    session_factory: async_sessionmaker[AsyncSession],
    candidate_ids: List[int],
    organization_ids: List[int],
) -> set[int]:
    if not candidate_ids:
        return set()
    async with session_factory() as session:
        result = await session.execute(
            select(Application.candidate_id)
            .join(Job, Job.id == Application.job_id)
            .join(Company, Company.id == Job.company_id)
            .where(
                Application.candidate_id.in_(candidate_ids),
                Application.accepted_by_company.is_(True),
                Company.organization_id.in_(organization_ids),
            )
        )
        return set(result.scalars().all())


async def list_entities(
    session_factory: async_sessionmaker[AsyncSession],
    capabilities: CapabilitySet,
    entity: EntityKind | str,
    filters: Optional[ListingFilters] = None,
    paging: Optional[Paging] = None,
) -> Dict[str, Any]:
    """
    List the rows of an entity kind visible to the caller.

    Args:
        session_factory: Session factory for scoped queries
        capabilities: Resolved caller capabilities
        entity: Entity kind (proposals are served by the proposals service)
        filters: Listing filters
        paging: Paging and sort

    Returns:
        Dictionary with items, total, page and limit
    """
    entity = EntityKind(entity)
    if entity is EntityKind.PROPOSALS:
        raise ValueError("Use the proposals listing for proposals")
    paging = paging or Paging()

    rows, total = await scope(session_factory, capabilities, entity, filters, paging)
    items = [SERIALIZERS[entity](row) for row in rows]

    if (
        entity is EntityKind.CANDIDATES
        and select_listing_capability(capabilities) is CapabilityKind.COMPANY
    ):
        accepted = await _accepted_candidate_ids(
            session_factory, [row.id for row in rows], capabilities.organization_ids
        )
        items = [
            item if item["id"] in accepted else mask_candidate(item) for item in items
        ]

    return {
        "items": items,
        "total": total,
        "page": paging.page,
        "limit": paging.effective_limit,
    }
