"""
Candidate service functions for API endpoints.

Reads mask PII for company viewers that have not accepted an application for
the candidate. Writes go through the ownership gate.
"""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.ownership import check_can_work
from core.access.capabilities import CapabilitySet
from core.exceptions import Forbidden, NotFound
from core.workflow.masking import mask_candidate, serialize_candidate
from database.models.applications import Application
from database.models.candidates import Candidate, CandidateSourcer, SourcerType
from database.models.jobs import Job
from database.models.organizations import Company

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "full_name",
        "email",
        "phone",
        "location",
        "current_title",
        "current_company",
        "linkedin_url",
        "github_url",
        "portfolio_url",
    }
)


async def _company_visibility(
    session: AsyncSession, candidate_id: int, organization_ids: list[int]
) -> Optional[bool]:
    """
    Check how a company member sees a candidate.

    Returns:
        None when no application links the candidate to the organizations,
        otherwise whether any such application was accepted
    """
    if not organization_ids:
        return None
    result = await session.execute(
        select(Application.accepted_by_company)
        .join(Job, Job.id == Application.job_id)
        .join(Company, Company.id == Job.company_id)
        .where(
            Application.candidate_id == candidate_id,
            Company.organization_id.in_(organization_ids),
        )
    )
    flags = list(result.scalars().all())
    if not flags:
        return None
    return any(flags)


async def _recruiter_sourced(
    session: AsyncSession, candidate_id: int, recruiter_id: int
) -> bool:
    result = await session.execute(
        select(CandidateSourcer.id)
        .where(
            CandidateSourcer.candidate_id == candidate_id,
            CandidateSourcer.sourcer_actor_id == recruiter_id,
            CandidateSourcer.sourcer_type == SourcerType.RECRUITER,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _recruiter_represents(
    session: AsyncSession, candidate_id: int, recruiter_id: int
) -> bool:
    result = await session.execute(
        select(Application.id)
        .where(
            Application.candidate_id == candidate_id,
            Application.recruiter_id == recruiter_id,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_candidate(
    session: AsyncSession,
    candidate_id: int,
    capabilities: CapabilitySet,
) -> Dict[str, Any]:
    """
    Get a candidate the caller is allowed to see.

    Args:
        session: Database session
        candidate_id: The candidate ID
        capabilities: Resolved caller capabilities

    Returns:
        Candidate dict, masked for company viewers before acceptance

    Raises:
        NotFound: Unknown candidate
        Forbidden: No capability covers this candidate
    """
    candidate = await session.get(Candidate, candidate_id)
    if candidate is None:
        raise NotFound("Candidate", candidate_id)

    data = serialize_candidate(candidate)
    if capabilities.is_platform_admin or capabilities.candidate_id == candidate_id:
        return data

    if capabilities.is_recruiter and (
        await _recruiter_sourced(session, candidate_id, capabilities.recruiter_id)
        or await _recruiter_represents(session, candidate_id, capabilities.recruiter_id)
    ):
        return data

    accepted = await _company_visibility(
        session, candidate_id, capabilities.organization_ids
    )
    if accepted is None:
        raise Forbidden(f"No access to candidate {candidate_id}")
    return data if accepted else mask_candidate(data)


async def update_candidate(
    session: AsyncSession,
    capabilities: CapabilitySet,
    candidate_id: int,
    updates: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Update a candidate profile.

    Allowed for platform admins, the candidate themselves, and recruiters not
    blocked by another sourcer's protection window.

    Args:
        session: Database session
        capabilities: Resolved caller capabilities
        candidate_id: The candidate ID
        updates: Field values to set

    Returns:
        Updated candidate dict

    Raises:
        NotFound: Unknown candidate
        Forbidden: Caller may not write this candidate
        ValueError: Unknown field in updates
    """
    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    candidate = await session.get(Candidate, candidate_id)
    if candidate is None:
        raise NotFound("Candidate", candidate_id)

    allowed = capabilities.is_platform_admin or capabilities.candidate_id == candidate_id
    if not allowed and capabilities.is_recruiter:
        allowed = await check_can_work(session, candidate_id, capabilities.recruiter_id)
    if not allowed:
        logger.warning(
            f"Candidate update denied for user {capabilities.user_id}",
            extra={"candidate_id": candidate_id},
        )
        raise Forbidden(f"Not allowed to update candidate {candidate_id}")

    for field, value in updates.items():
        setattr(candidate, field, value)
    await session.commit()
    await session.refresh(candidate)

    logger.info(f"Updated candidate {candidate_id}", extra={"candidate_id": candidate_id})
    return serialize_candidate(candidate)
