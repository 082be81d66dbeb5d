"""
Application service functions for API endpoints.

Stage changes, company acceptance and the audit trail. Every state change
writes one audit entry and publishes its event after the commit.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.ownership import latest_sourcer, check_can_work
from core.access.capabilities import CapabilitySet
from core.events import EventPublisher, EventType, get_event_publisher
from core.exceptions import AlreadyOwned, Forbidden, NotFound
from core.utils.datetime import ensure_aware, now, to_iso
from core.workflow.stages import ActionParty, pending_action_party, validate_transition
from database.models.applications import (
    Application,
    ApplicationAuditLog,
    ApplicationStage,
    AuditAction,
)
from database.models.candidates import Candidate
from database.models.jobs import Job
from database.models.organizations import Company

logger = logging.getLogger(__name__)


# ==================== Helpers ===================== #
def application_to_dict(application: Application) -> Dict[str, Any]:
    return {
        "id": application.id,
        "job_id": application.job_id,
        "candidate_id": application.candidate_id,
        "recruiter_id": application.recruiter_id,
        "stage": ApplicationStage(application.stage).value,
        "notes": application.notes,
        "accepted_by_company": application.accepted_by_company,
        "accepted_at": to_iso(application.accepted_at),
        "action_due_date": to_iso(application.action_due_date),
        "expires_at": to_iso(application.expires_at),
        "created_at": to_iso(application.created_at),
        "updated_at": to_iso(application.updated_at),
    }


def audit_entry_to_dict(entry: ApplicationAuditLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "application_id": entry.application_id,
        "action": AuditAction(entry.action).value,
        "performed_by_actor_id": entry.performed_by_actor_id,
        "performed_by_role": entry.performed_by_role,
        "company_id": entry.company_id,
        "old_value": entry.old_value,
        "new_value": entry.new_value,
        "metadata": entry.audit_metadata,
        "created_at": to_iso(entry.created_at),
    }


def actor_reference(capabilities: CapabilitySet) -> tuple[Optional[int], str]:
    """Pick the actor id and role recorded for an action."""
    role = capabilities.primary_role
    if role == "recruiter":
        return capabilities.recruiter_id, role
    if role == "candidate":
        return capabilities.candidate_id, role
    return capabilities.user_id, role


async def load_application(
    session: AsyncSession, application_id: int, for_update: bool = False
) -> Application:
    """Load an application, optionally holding its row lock until commit."""
    query = select(Application).where(Application.id == application_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    application = (await session.execute(query)).scalar_one_or_none()
    if application is None:
        raise NotFound("Application", application_id)
    return application


async def get_job_company(session: AsyncSession, job_id: int) -> tuple[int, int]:
    """Return (company_id, organization_id) owning a job."""
    result = await session.execute(
        select(Company.id, Company.organization_id)
        .join(Job, Job.company_id == Company.id)
        .where(Job.id == job_id)
    )
    row = result.first()
    if row is None:
        raise NotFound("Job", job_id)
    return row.id, row.organization_id


def can_view_application(
    capabilities: CapabilitySet,
    application: Application,
    company_organization_id: Optional[int],
) -> bool:
    """Single-record check; any capability the caller holds counts."""
    if capabilities.is_platform_admin:
        return True
    if capabilities.recruiter_id is not None and capabilities.recruiter_id == application.recruiter_id:
        return True
    if capabilities.candidate_id is not None and capabilities.candidate_id == application.candidate_id:
        return True
    return capabilities.belongs_to_organization(company_organization_id)


def can_move_application(
    capabilities: CapabilitySet,
    application: Application,
    company_organization_id: Optional[int],
    target: ApplicationStage,
) -> bool:
    """
    Check who may move an application to ``target``.

    Admins and members of the owning company may make any allowed move; only
    they can hire. The representing recruiter may make the other moves. The
    candidate may withdraw, and otherwise only move while the next action is
    theirs.
    """
    if capabilities.is_platform_admin or capabilities.belongs_to_organization(
        company_organization_id
    ):
        return True
    if target is ApplicationStage.HIRED:
        return False
    if capabilities.recruiter_id is not None and capabilities.recruiter_id == application.recruiter_id:
        return True
    if capabilities.candidate_id is not None and capabilities.candidate_id == application.candidate_id:
        return (
            target is ApplicationStage.WITHDRAWN
            or pending_action_party(application.stage) is ActionParty.CANDIDATE
        )
    return False


async def ensure_can_view(
    session: AsyncSession, capabilities: CapabilitySet, application: Application
) -> tuple[int, int]:
    """Raise Forbidden unless the caller may see the application."""
    company_id, organization_id = await get_job_company(session, application.job_id)
    if not can_view_application(capabilities, application, organization_id):
        logger.warning(
            f"Access to application {application.id} denied for user {capabilities.user_id}",
            extra={"application_id": application.id},
        )
        raise Forbidden(f"No access to application {application.id}")
    return company_id, organization_id


def _audit(
    application: Application,
    action: AuditAction,
    capabilities: CapabilitySet,
    company_id: Optional[int],
    old_value: Optional[Dict[str, Any]] = None,
    new_value: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    role: Optional[str] = None,
) -> ApplicationAuditLog:
    actor_id, actor_role = actor_reference(capabilities)
    return ApplicationAuditLog(
        application_id=application.id,
        action=action,
        performed_by_actor_id=actor_id,
        performed_by_role=role or actor_role,
        company_id=company_id,
        old_value=old_value,
        new_value=new_value,
        audit_metadata=metadata,
    )


# ==================== Operations ===================== #
async def get_application(
    session: AsyncSession, application_id: int, capabilities: CapabilitySet
) -> Dict[str, Any]:
    application = await load_application(session, application_id)
    await ensure_can_view(session, capabilities, application)
    return application_to_dict(application)


async def create_application(
    session: AsyncSession,
    capabilities: CapabilitySet,
    job_id: int,
    candidate_id: int,
    notes: Optional[str] = None,
    action_due_date: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    """
    Create an application.

    A recruiter proposing a candidate starts at ``recruiter_proposed`` and must
    be allowed to work the candidate. A candidate applying for themselves
    starts at ``draft``.

    Args:
        session: Database session
        capabilities: Resolved caller capabilities
        job_id: Job being applied to
        candidate_id: Candidate being submitted
        notes: Recruiter pitch or cover notes
        action_due_date: When the candidate should respond
        expires_at: When the proposal lapses
        publisher: Event publisher

    Returns:
        The new application

    Raises:
        NotFound: Unknown job or candidate
        AlreadyOwned: Another recruiter's protection window covers the candidate
        Forbidden: Caller is neither a recruiter nor the candidate
    """
    publisher = publisher or get_event_publisher()
    company_id, _ = await get_job_company(session, job_id)
    if await session.get(Candidate, candidate_id) is None:
        raise NotFound("Candidate", candidate_id)

    if capabilities.candidate_id is not None and capabilities.candidate_id == candidate_id:
        stage, recruiter_id, role = ApplicationStage.DRAFT, None, "candidate"
    elif capabilities.is_recruiter:
        if not await check_can_work(session, candidate_id, capabilities.recruiter_id):
            owner = await latest_sourcer(session, candidate_id)
            raise AlreadyOwned(
                candidate_id,
                owner.sourcer_actor_id,
                to_iso(owner.protection_expires_at),
            )
        stage, recruiter_id, role = (
            ApplicationStage.RECRUITER_PROPOSED,
            capabilities.recruiter_id,
            "recruiter",
        )
    else:
        raise Forbidden("Only recruiters or the candidate can create applications")

    application = Application(
        job_id=job_id,
        candidate_id=candidate_id,
        recruiter_id=recruiter_id,
        stage=stage,
        notes=notes,
        action_due_date=ensure_aware(action_due_date),
        expires_at=ensure_aware(expires_at),
    )
    session.add(application)
    await session.flush()

    session.add(
        _audit(
            application,
            AuditAction.CREATED,
            capabilities,
            company_id,
            new_value={"stage": stage.value},
            role=role,
        )
    )
    await session.commit()

    logger.info(
        f"Created application {application.id} at {stage.value}",
        extra={"application_id": application.id},
    )
    result = application_to_dict(application)
    await publisher.publish(
        EventType.APPLICATION_CREATED,
        {
            "application_id": application.id,
            "job_id": job_id,
            "candidate_id": candidate_id,
            "recruiter_id": recruiter_id,
            "stage": stage.value,
        },
    )
    return result


async def transition(
    session: AsyncSession,
    application_id: int,
    new_stage: ApplicationStage | str,
    capabilities: CapabilitySet,
    notes: Optional[str] = None,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    """
    Move an application to a new stage.

    Args:
        session: Database session
        application_id: The application ID
        new_stage: Target stage
        capabilities: Resolved caller capabilities
        notes: Notes replacing the application's notes
        publisher: Event publisher

    Returns:
        Updated application

    Raises:
        NotFound: Unknown application
        Forbidden: Caller cannot see the application, or may not make this move
        InvalidTransition: Move not allowed from the current stage
    """
    publisher = publisher or get_event_publisher()
    application = await load_application(session, application_id, for_update=True)
    company_id, organization_id = await ensure_can_view(session, capabilities, application)

    old_stage = ApplicationStage(application.stage)
    new_stage = validate_transition(old_stage, new_stage)
    if not can_move_application(capabilities, application, organization_id, new_stage):
        await session.rollback()
        logger.warning(
            f"Move of application {application_id} to {new_stage.value} denied for user {capabilities.user_id}",
            extra={"application_id": application_id},
        )
        raise Forbidden(f"Caller may not move application {application_id} to {new_stage.value}")

    application.stage = new_stage
    if notes is not None:
        application.notes = notes
    session.add(
        _audit(
            application,
            AuditAction.STAGE_CHANGED,
            capabilities,
            company_id,
            old_value={"stage": old_stage.value},
            new_value={"stage": new_stage.value},
            metadata={"notes": notes} if notes else None,
        )
    )
    await session.commit()
    await session.refresh(application)

    logger.info(
        f"Application {application_id} moved {old_stage.value} -> {new_stage.value}",
        extra={"application_id": application_id},
    )
    actor_id, role = actor_reference(capabilities)
    await publisher.publish(
        EventType.APPLICATION_STAGE_CHANGED,
        {
            "application_id": application_id,
            "old_stage": old_stage.value,
            "new_stage": new_stage.value,
            "actor_id": actor_id,
            "actor_role": role,
        },
    )
    return application_to_dict(application)


async def accept_application(
    session: AsyncSession,
    application_id: int,
    capabilities: CapabilitySet,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    """
    Accept an application on behalf of the owning company.

    Acceptance unmasks the candidate for the company. Accepting twice returns
    the current state without a second audit entry or event.

    Raises:
        NotFound: Unknown application
        Forbidden: Caller is not a member of the owning organization or an admin
    """
    publisher = publisher or get_event_publisher()
    application = await load_application(session, application_id, for_update=True)
    company_id, organization_id = await get_job_company(session, application.job_id)

    if not (
        capabilities.is_platform_admin
        or capabilities.belongs_to_organization(organization_id)
    ):
        logger.warning(
            f"Acceptance of application {application_id} denied for user {capabilities.user_id}",
            extra={"application_id": application_id},
        )
        raise Forbidden("Only the owning company can accept this application")

    if application.accepted_by_company:
        return application_to_dict(application)

    accepted_at = now()
    # Only the caller whose update flips the flag records the acceptance
    flipped = await session.execute(
        update(Application)
        .where(Application.id == application_id, Application.accepted_by_company == False)  # noqa: E712
        .values(accepted_by_company=True, accepted_at=accepted_at)
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount == 0:
        await session.rollback()
        await session.refresh(application)
        return application_to_dict(application)

    session.add(
        _audit(
            application,
            AuditAction.ACCEPTED,
            capabilities,
            company_id,
            old_value={"accepted_by_company": False},
            new_value={"accepted_by_company": True},
            role="admin" if capabilities.is_platform_admin else "company",
        )
    )
    await session.commit()
    await session.refresh(application)

    logger.info(
        f"Application {application_id} accepted by company {company_id}",
        extra={"application_id": application_id},
    )
    await publisher.publish(
        EventType.APPLICATION_ACCEPTED,
        {
            "application_id": application_id,
            "company_id": company_id,
            "accepted_at": to_iso(accepted_at),
        },
    )
    return application_to_dict(application)


async def get_application_history(
    session: AsyncSession,
    application_id: int,
    capabilities: CapabilitySet,
) -> List[Dict[str, Any]]:
    """
    Get the audit trail of an application, newest first.

    Raises:
        NotFound: Unknown application
        Forbidden: Caller cannot see the application
    """
    application = await load_application(session, application_id)
    await ensure_can_view(session, capabilities, application)

    result = await session.execute(
        select(ApplicationAuditLog)
        .where(ApplicationAuditLog.application_id == application_id)
        .order_by(ApplicationAuditLog.created_at.desc(), ApplicationAuditLog.id.desc())
    )
    return [audit_entry_to_dict(entry) for entry in result.scalars().all()]
