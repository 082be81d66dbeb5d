"""
Proposal views of applications.

A proposal is an application enriched with derived workflow fields: its type,
who must act next, whether the caller is that party, urgency and display
hints. Candidate PII is masked for company viewers until acceptance.
"""

from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.services.applications import ensure_can_view, load_application
from core.access.capabilities import CapabilitySet
from core.access.scoping import EntityKind, ListingFilters, Paging, scope
from core.utils.datetime import now as utc_now, to_iso
from core.workflow.masking import mask_candidate, serialize_candidate, should_mask
from core.workflow.stages import (
    ActionParty,
    action_label,
    calculate_urgency,
    can_act,
    pending_action_party,
    pending_action_type,
    proposal_type,
    status_badge,
)
from database.models.applications import Application, ApplicationStage
from database.models.candidates import Candidate
from database.models.jobs import Job
from database.models.organizations import Company

logger = logging.getLogger(__name__)


def enrich_proposal(
    application: Application,
    candidate: Optional[Candidate],
    job: Optional[Job],
    company: Optional[Company],
    capabilities: CapabilitySet,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build the proposal view of an application for one caller.

    Args:
        application: Application row
        candidate: The application's candidate
        job: The application's job
        company: Company owning the job
        capabilities: Resolved caller capabilities
        now: Reference time for urgency

    Returns:
        Proposal dict
    """
    stage = ApplicationStage(application.stage)
    has_recruiter = application.recruiter_id is not None
    kind = proposal_type(stage, has_recruiter)
    party = pending_action_party(stage)
    organization_id = company.organization_id if company else None
    urgency = calculate_urgency(
        application.action_due_date, application.expires_at, now or utc_now()
    )

    candidate_data = serialize_candidate(candidate) if candidate else None
    if candidate_data and should_mask(
        capabilities,
        application.accepted_by_company,
        application.candidate_id,
        application.recruiter_id,
        organization_id,
    ):
        candidate_data = mask_candidate(candidate_data)

    return {
        "id": application.id,
        "type": kind.value,
        "stage": stage.value,
        "candidate": candidate_data,
        "job": {
            "id": job.id,
            "title": job.title,
            "company_id": job.company_id,
        }
        if job
        else None,
        "company": {"id": company.id, "name": company.name} if company else None,
        "recruiter_id": application.recruiter_id,
        "pending_action_by": party.value,
        "pending_action_type": pending_action_type(stage).value,
        "can_current_user_act": can_act(
            capabilities,
            party,
            application.candidate_id,
            application.recruiter_id,
            organization_id,
        ),
        "action_label": action_label(kind),
        "status_badge": status_badge(stage).to_dict(),
        "accepted_by_company": application.accepted_by_company,
        "action_due_date": to_iso(application.action_due_date),
        "expires_at": to_iso(application.expires_at),
        "is_urgent": urgency.is_urgent,
        "is_overdue": urgency.is_overdue,
        "hours_remaining": urgency.hours_remaining,
        "notes": application.notes,
        "created_at": to_iso(application.created_at),
        "updated_at": to_iso(application.updated_at),
    }


def summarize_proposals(proposals: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """Count proposals by what the caller has to do about them."""
    summary = {
        "actionable_count": 0,
        "waiting_count": 0,
        "urgent_count": 0,
        "overdue_count": 0,
    }
    for proposal in proposals:
        if proposal["can_current_user_act"]:
            summary["actionable_count"] += 1
        elif proposal["pending_action_by"] != ActionParty.NONE.value:
            summary["waiting_count"] += 1
        if proposal["is_urgent"]:
            summary["urgent_count"] += 1
        if proposal["is_overdue"]:
            summary["overdue_count"] += 1
    return summary


async def _load_related(
    session: AsyncSession, applications: List[Application]
) -> tuple[dict, dict, dict]:
    candidate_ids = {a.candidate_id for a in applications}
    job_ids = {a.job_id for a in applications}
    if not applications:
        return {}, {}, {}

    candidates = (
        await session.execute(select(Candidate).where(Candidate.id.in_(candidate_ids)))
    ).scalars().all()
    jobs = (await session.execute(select(Job).where(Job.id.in_(job_ids)))).scalars().all()
    company_ids = {job.company_id for job in jobs}
    companies = (
        await session.execute(select(Company).where(Company.id.in_(company_ids)))
    ).scalars().all()

    return (
        {c.id: c for c in candidates},
        {j.id: j for j in jobs},
        {c.id: c for c in companies},
    )


async def list_proposals(
    session_factory: async_sessionmaker[AsyncSession],
    capabilities: CapabilitySet,
    filters: Optional[ListingFilters] = None,
    paging: Optional[Paging] = None,
) -> Dict[str, Any]:
    """
    List the caller's proposals with summary counts.

    Summary counts cover the returned page.

    Args:
        session_factory: Session factory for scoped queries
        capabilities: Resolved caller capabilities
        filters: Listing filters
        paging: Paging and sort

    Returns:
        Dictionary with items, total, page, limit and summary
    """
    paging = paging or Paging()
    rows, total = await scope(
        session_factory, capabilities, EntityKind.PROPOSALS, filters, paging
    )

    async with session_factory() as session:
        candidates, jobs, companies = await _load_related(session, rows)

    reference = utc_now()
    items = []
    for application in rows:
        job = jobs.get(application.job_id)
        items.append(
            enrich_proposal(
                application,
                candidates.get(application.candidate_id),
                job,
                companies.get(job.company_id) if job else None,
                capabilities,
                now=reference,
            )
        )

    return {
        "items": items,
        "total": total,
        "page": paging.page,
        "limit": paging.effective_limit,
        "summary": summarize_proposals(items),
    }


async def get_proposal(
    session: AsyncSession,
    application_id: int,
    capabilities: CapabilitySet,
) -> Dict[str, Any]:
    """
    Get one proposal.

    Raises:
        NotFound: Unknown application
        Forbidden: Caller cannot see the application
    """
    application = await load_application(session, application_id)
    company_id, _ = await ensure_can_view(session, capabilities, application)

    candidate = await session.get(Candidate, application.candidate_id)
    job = await session.get(Job, application.job_id)
    company = await session.get(Company, company_id)
    return enrich_proposal(application, candidate, job, company, capabilities)
