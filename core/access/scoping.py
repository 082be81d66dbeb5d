"""
Scoped query builder.

Every listing goes through ``scope``. Exactly one capability (picked by
``select_listing_capability``) decides the WHERE clause, looked up in
``SCOPE_POLICY``. Callers with no capability get an empty page rather than an
error so record ids cannot be probed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from core.access.capabilities import (
    CapabilityKind,
    CapabilitySet,
    select_listing_capability,
)
from core.config import settings
from database.models.applications import Application
from database.models.candidates import Candidate, CandidateSourcer, SourcerType
from database.models.jobs import Job, JobAssignment
from database.models.organizations import Company
from database.models.placements import Placement, PlacementCollaborator

logger = logging.getLogger(__name__)


class EntityKind(str, PyEnum):
    JOBS = "jobs"
    CANDIDATES = "candidates"
    APPLICATIONS = "applications"
    PROPOSALS = "proposals"
    COMPANIES = "companies"
    PLACEMENTS = "placements"


@dataclass
class ListingFilters:
    """Filters accepted by every listing."""

    search: Optional[str] = None
    organization_id: Optional[int] = None  # narrows admin listings
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    equals: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Paging:
    page: int = 1
    limit: int = 25
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @property
    def effective_limit(self) -> int:
        return max(1, min(self.limit, settings.max_page_size))

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.effective_limit


@dataclass(frozen=True)
class EntityConfig:
    """How one entity kind is queried, searched, filtered and sorted."""

    model: Any
    base_query: Callable[[], Select]
    search_columns: Tuple[Any, ...]
    sort_columns: Dict[str, Any]
    filter_columns: Dict[str, Any]


PredicateBuilder = Callable[[CapabilitySet], ColumnElement]


# ==================== Shared subqueries ===================== #
def _org_company_ids(organization_ids: Sequence[int]):
    return select(Company.id).where(Company.organization_id.in_(organization_ids))


def _org_job_ids(organization_ids: Sequence[int]):
    return (
        select(Job.id)
        .join(Company, Company.id == Job.company_id)
        .where(Company.organization_id.in_(organization_ids))
    )


def _assigned_job_ids(recruiter_id: int):
    return select(JobAssignment.job_id).where(JobAssignment.recruiter_id == recruiter_id)


def _applied_job_ids(candidate_id: int):
    return select(Application.job_id).where(Application.candidate_id == candidate_id)


# ==================== Organization scope ===================== #
# Used for company members and for admins narrowing by organization
ORGANIZATION_SCOPE: Dict[EntityKind, Callable[[Sequence[int]], ColumnElement]] = {
    EntityKind.JOBS: lambda orgs: Job.company_id.in_(_org_company_ids(orgs)),
    EntityKind.CANDIDATES: lambda orgs: Candidate.id.in_(
        select(Application.candidate_id).where(
            Application.job_id.in_(_org_job_ids(orgs))
        )
    ),
    EntityKind.APPLICATIONS: lambda orgs: Application.job_id.in_(_org_job_ids(orgs)),
    EntityKind.PROPOSALS: lambda orgs: Application.job_id.in_(_org_job_ids(orgs)),
    EntityKind.COMPANIES: lambda orgs: Company.organization_id.in_(orgs),
    EntityKind.PLACEMENTS: lambda orgs: Placement.company_id.in_(_org_company_ids(orgs)),
}


def _company_scope(entity: EntityKind) -> PredicateBuilder:
    return lambda caps: ORGANIZATION_SCOPE[entity](caps.organization_ids)


# ==================== Policy table ===================== #
SCOPE_POLICY: Dict[Tuple[EntityKind, CapabilityKind], PredicateBuilder] = {
    # Jobs
    (EntityKind.JOBS, CapabilityKind.RECRUITER): lambda caps: Job.id.in_(
        _assigned_job_ids(caps.recruiter_id)
    ),
    (EntityKind.JOBS, CapabilityKind.COMPANY): _company_scope(EntityKind.JOBS),
    (EntityKind.JOBS, CapabilityKind.CANDIDATE): lambda caps: Job.id.in_(
        _applied_job_ids(caps.candidate_id)
    ),
    # Candidates
    (EntityKind.CANDIDATES, CapabilityKind.RECRUITER): lambda caps: Candidate.id.in_(
        select(CandidateSourcer.candidate_id).where(
            CandidateSourcer.sourcer_actor_id == caps.recruiter_id,
            CandidateSourcer.sourcer_type == SourcerType.RECRUITER,
        )
    ),
    (EntityKind.CANDIDATES, CapabilityKind.COMPANY): _company_scope(EntityKind.CANDIDATES),
    (EntityKind.CANDIDATES, CapabilityKind.CANDIDATE): lambda caps: Candidate.id
    == caps.candidate_id,
    # Companies
    (EntityKind.COMPANIES, CapabilityKind.RECRUITER): lambda caps: Company.id.in_(
        select(Job.company_id).where(Job.id.in_(_assigned_job_ids(caps.recruiter_id)))
    ),
    (EntityKind.COMPANIES, CapabilityKind.COMPANY): _company_scope(EntityKind.COMPANIES),
    (EntityKind.COMPANIES, CapabilityKind.CANDIDATE): lambda caps: Company.id.in_(
        select(Job.company_id).where(Job.id.in_(_applied_job_ids(caps.candidate_id)))
    ),
    # Placements
    (EntityKind.PLACEMENTS, CapabilityKind.RECRUITER): lambda caps: or_(
        Placement.recruiter_id == caps.recruiter_id,
        Placement.id.in_(
            select(PlacementCollaborator.placement_id).where(
                PlacementCollaborator.recruiter_actor_id == caps.recruiter_id
            )
        ),
    ),
    (EntityKind.PLACEMENTS, CapabilityKind.COMPANY): _company_scope(EntityKind.PLACEMENTS),
    (EntityKind.PLACEMENTS, CapabilityKind.CANDIDATE): lambda caps: Placement.candidate_id
    == caps.candidate_id,
}

# Applications and proposals share rows and rules
for _entity in (EntityKind.APPLICATIONS, EntityKind.PROPOSALS):
    SCOPE_POLICY[(_entity, CapabilityKind.RECRUITER)] = (
        lambda caps: Application.recruiter_id == caps.recruiter_id
    )
    SCOPE_POLICY[(_entity, CapabilityKind.COMPANY)] = _company_scope(_entity)
    SCOPE_POLICY[(_entity, CapabilityKind.CANDIDATE)] = (
        lambda caps: Application.candidate_id == caps.candidate_id
    )


# ==================== Entity configuration ===================== #
def _application_query() -> Select:
    return (
        select(Application)
        .join(Candidate, Candidate.id == Application.candidate_id)
        .join(Job, Job.id == Application.job_id)
    )


def _placement_query() -> Select:
    return (
        select(Placement)
        .join(Candidate, Candidate.id == Placement.candidate_id)
        .join(Job, Job.id == Placement.job_id)
    )


_APPLICATION_CONFIG = EntityConfig(
    model=Application,
    base_query=_application_query,
    search_columns=(Candidate.full_name, Job.title),
    sort_columns={
        "created_at": Application.created_at,
        "updated_at": Application.updated_at,
        "stage": Application.stage,
        "action_due_date": Application.action_due_date,
    },
    filter_columns={
        "stage": Application.stage,
        "job_id": Application.job_id,
        "candidate_id": Application.candidate_id,
        "recruiter_id": Application.recruiter_id,
        "accepted_by_company": Application.accepted_by_company,
    },
)

ENTITY_CONFIG: Dict[EntityKind, EntityConfig] = {
    EntityKind.JOBS: EntityConfig(
        model=Job,
        base_query=lambda: select(Job),
        search_columns=(Job.title, Job.description, Job.location),
        sort_columns={
            "created_at": Job.created_at,
            "updated_at": Job.updated_at,
            "title": Job.title,
        },
        filter_columns={"status": Job.status, "company_id": Job.company_id},
    ),
    EntityKind.CANDIDATES: EntityConfig(
        model=Candidate,
        base_query=lambda: select(Candidate),
        search_columns=(Candidate.full_name, Candidate.email, Candidate.current_title),
        sort_columns={
            "created_at": Candidate.created_at,
            "updated_at": Candidate.updated_at,
            "full_name": Candidate.full_name,
        },
        filter_columns={"location": Candidate.location},
    ),
    EntityKind.APPLICATIONS: _APPLICATION_CONFIG,
    EntityKind.PROPOSALS: _APPLICATION_CONFIG,
    EntityKind.COMPANIES: EntityConfig(
        model=Company,
        base_query=lambda: select(Company),
        search_columns=(Company.name, Company.industry),
        sort_columns={"created_at": Company.created_at, "name": Company.name},
        filter_columns={"industry": Company.industry},
    ),
    EntityKind.PLACEMENTS: EntityConfig(
        model=Placement,
        base_query=_placement_query,
        search_columns=(Job.title, Candidate.full_name),
        sort_columns={
            "created_at": Placement.created_at,
            "hired_at": Placement.hired_at,
            "salary": Placement.salary,
        },
        filter_columns={
            "state": Placement.state,
            "job_id": Placement.job_id,
            "candidate_id": Placement.candidate_id,
            "company_id": Placement.company_id,
        },
    ),
}


# ==================== Query construction ===================== #
def access_predicate(
    capabilities: CapabilitySet,
    entity: EntityKind,
    organization_id: Optional[int] = None,
) -> Tuple[bool, Optional[ColumnElement]]:
    """
    Build the access predicate for a listing.

    Args:
        capabilities: Resolved caller capabilities
        entity: Entity being listed
        organization_id: Optional organization narrowing for admins

    Returns:
        (allowed, predicate). ``allowed`` is False when the caller holds no
        capability; ``predicate`` is None when no restriction applies.
    """
    kind = select_listing_capability(capabilities)
    if kind is CapabilityKind.NONE:
        return False, None
    if kind is CapabilityKind.ADMIN:
        if organization_id is None:
            return True, None
        return True, ORGANIZATION_SCOPE[entity]([organization_id])
    return True, SCOPE_POLICY[(entity, kind)](capabilities)


def _coerce(column: Any, value: Any) -> Any:
    enum_class = getattr(column.type, "enum_class", None)
    if enum_class is not None and not isinstance(value, enum_class):
        try:
            return enum_class(value)
        except ValueError:
            raise ValueError(f"Invalid value '{value}' for {column.key}") from None
    return value


def build_filtered_query(
    config: EntityConfig, filters: ListingFilters, predicate: Optional[ColumnElement]
) -> Select:
    """Apply access predicate, search and equality filters to the base query."""
    query = config.base_query()
    conditions = []
    if predicate is not None:
        conditions.append(predicate)

    if filters.search:
        # LIKE wildcards typed by the caller match literally
        term = filters.search.strip()
        conditions.append(
            or_(*[column.icontains(term, autoescape=True) for column in config.search_columns])
        )

    for name, value in filters.equals.items():
        if value is None:
            continue
        column = config.filter_columns.get(name)
        if column is None:
            raise ValueError(f"Unsupported filter: {name}")
        conditions.append(column == _coerce(column, value))

    created_at = config.model.created_at
    if filters.created_after:
        conditions.append(created_at >= filters.created_after)
    if filters.created_before:
        conditions.append(created_at <= filters.created_before)

    if conditions:
        query = query.where(and_(*conditions))
    return query


def apply_paging(config: EntityConfig, query: Select, paging: Paging) -> Select:
    """Sort by a whitelisted column (default created_at desc) and page."""
    sort_column = config.sort_columns.get(paging.sort_by, config.model.created_at)
    if paging.sort_order == "asc":
        query = query.order_by(sort_column.asc(), config.model.id.asc())
    else:
        query = query.order_by(sort_column.desc(), config.model.id.desc())
    return query.offset(paging.offset).limit(paging.effective_limit)


async def scope(
    session_factory: async_sessionmaker[AsyncSession],
    capabilities: CapabilitySet,
    entity: EntityKind,
    filters: Optional[ListingFilters] = None,
    paging: Optional[Paging] = None,
) -> Tuple[List[Any], int]:
    """
    List the rows of an entity kind the caller is allowed to see.

    Count and page queries come from the same filtered query and run
    concurrently on separate sessions.

    Args:
        session_factory: Session factory for the two concurrent queries
        capabilities: Resolved caller capabilities
        entity: Entity kind to list
        filters: Search and equality filters
        paging: Page, limit and sort

    Returns:
        (rows, total); ([], 0) when the caller holds no capability
    """
    entity = EntityKind(entity)
    filters = filters or ListingFilters()
    paging = paging or Paging(limit=settings.default_page_size)

    allowed, predicate = access_predicate(capabilities, entity, filters.organization_id)
    if not allowed:
        logger.info("Listing denied, caller holds no capability", extra={"entity": entity.value})
        return [], 0

    config = ENTITY_CONFIG[entity]
    query = build_filtered_query(config, filters, predicate)
    count_query = select(func.count()).select_from(query.subquery())
    page_query = apply_paging(config, query, paging)

    async def _count() -> int:
        async with session_factory() as session:
            result = await session.execute(count_query)
            return result.scalar_one()

    async def _rows() -> List[Any]:
        async with session_factory() as session:
            result = await session.execute(page_query)
            return list(result.scalars().all())

    total, rows = await asyncio.gather(_count(), _rows())
    return rows, total
