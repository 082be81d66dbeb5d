"""
Placement service functions.

A placement is created from an application at offer (or already hired), and
then moves through hired -> active -> completed, or fails.
"""

from typing import Any, Dict, Optional
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.applications import (
    actor_reference,
    get_job_company,
    load_application,
)
from core.access.capabilities import CapabilitySet
from core.config import settings
from core.events import EventPublisher, EventType, get_event_publisher
from core.exceptions import Forbidden, InvalidTransition, NotFound
from core.utils.datetime import add_days, ensure_aware, now, to_iso
from core.utils.formatting import round_money
from database.models.applications import ApplicationAuditLog, ApplicationStage, AuditAction
from database.models.jobs import Job
from database.models.organizations import Company
from database.models.placements import Placement, PlacementState

logger = logging.getLogger(__name__)

PLACEMENT_TRANSITIONS = {
    PlacementState.HIRED: {PlacementState.ACTIVE, PlacementState.FAILED},
    PlacementState.ACTIVE: {PlacementState.COMPLETED, PlacementState.FAILED},
}


def placement_to_dict(placement: Placement) -> Dict[str, Any]:
    return {
        "id": placement.id,
        "application_id": placement.application_id,
        "job_id": placement.job_id,
        "candidate_id": placement.candidate_id,
        "company_id": placement.company_id,
        "recruiter_id": placement.recruiter_id,
        "salary": placement.salary,
        "fee_percentage": placement.fee_percentage,
        "fee_amount": placement.fee_amount,
        "recruiter_share": placement.recruiter_share,
        "platform_share": placement.platform_share,
        "state": PlacementState(placement.state).value,
        "hired_at": to_iso(placement.hired_at),
        "start_date": to_iso(placement.start_date),
        "guarantee_days": placement.guarantee_days,
        "guarantee_expires_at": to_iso(placement.guarantee_expires_at),
        "failure_reason": placement.failure_reason,
        "failed_at": to_iso(placement.failed_at),
        "created_at": to_iso(placement.created_at),
    }


def calculate_fees(salary: float, fee_percentage: float) -> Dict[str, float]:
    """
    Split a placement fee between the recruiter and the platform.

    Args:
        salary: Annual salary of the hire
        fee_percentage: Job fee as a percentage of salary

    Returns:
        fee_amount, recruiter_share and platform_share, rounded to cents
    """
    fee_amount = round_money(salary * fee_percentage / 100)
    recruiter_share = round_money(fee_amount * settings.recruiter_share_percentage / 100)
    return {
        "fee_amount": fee_amount,
        "recruiter_share": recruiter_share,
        "platform_share": round_money(fee_amount - recruiter_share),
    }


async def _existing_placement(
    session: AsyncSession, application_id: int
) -> Optional[Placement]:
    result = await session.execute(
        select(Placement).where(Placement.application_id == application_id)
    )
    return result.scalar_one_or_none()


async def _load_placement(session: AsyncSession, placement_id: int) -> Placement:
    placement = await session.get(Placement, placement_id)
    if placement is None:
        raise NotFound("Placement", placement_id)
    return placement


async def _placement_organization(session: AsyncSession, placement: Placement) -> int:
    result = await session.execute(
        select(Company.organization_id).where(Company.id == placement.company_id)
    )
    return result.scalar_one()


def can_view_placement(
    capabilities: CapabilitySet, placement: Placement, organization_id: int
) -> bool:
    if capabilities.is_platform_admin:
        return True
    if capabilities.recruiter_id is not None and capabilities.recruiter_id == placement.recruiter_id:
        return True
    if capabilities.candidate_id is not None and capabilities.candidate_id == placement.candidate_id:
        return True
    return capabilities.belongs_to_organization(organization_id)


async def ensure_can_manage_placement(
    session: AsyncSession, capabilities: CapabilitySet, placement_id: int
) -> Placement:
    """
    Load a placement the caller may manage.

    Admins, members of the owning organization and the placing recruiter may
    manage it.
    """
    placement = await _load_placement(session, placement_id)
    organization_id = await _placement_organization(session, placement)
    if capabilities.is_platform_admin or capabilities.belongs_to_organization(organization_id):
        return placement
    if capabilities.recruiter_id is not None and capabilities.recruiter_id == placement.recruiter_id:
        return placement
    logger.warning(
        f"Placement {placement_id} management denied for user {capabilities.user_id}",
        extra={"placement_id": placement_id},
    )
    raise Forbidden(f"Not allowed to manage placement {placement_id}")


async def get_placement(
    session: AsyncSession, placement_id: int, capabilities: CapabilitySet
) -> Dict[str, Any]:
    placement = await _load_placement(session, placement_id)
    organization_id = await _placement_organization(session, placement)
    if not can_view_placement(capabilities, placement, organization_id):
        raise Forbidden(f"No access to placement {placement_id}")
    return placement_to_dict(placement)


async def create_placement(
    session: AsyncSession,
    application_id: int,
    salary: float,
    capabilities: CapabilitySet,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    """
    Record a hire for an application.

    An application at ``offer`` moves to ``hired`` in the same transaction.
    Creating a placement twice for one application returns the first one.

    Args:
        session: Database session
        application_id: The application ID
        salary: Annual salary of the hire
        capabilities: Resolved caller capabilities
        publisher: Event publisher

    Returns:
        The placement

    Raises:
        NotFound: Unknown application
        Forbidden: Caller is not the owning company or an admin
        InvalidTransition: Application is neither at offer nor hired
        ValueError: Non-positive salary
    """
    if salary <= 0:
        raise ValueError("Salary must be positive")
    publisher = publisher or get_event_publisher()

    application = await load_application(session, application_id)
    company_id, organization_id = await get_job_company(session, application.job_id)
    if not (
        capabilities.is_platform_admin
        or capabilities.belongs_to_organization(organization_id)
    ):
        raise Forbidden("Only the hiring company can record a placement")

    existing = await _existing_placement(session, application_id)
    if existing is not None:
        return placement_to_dict(existing)

    stage = ApplicationStage(application.stage)
    if stage not in (ApplicationStage.OFFER, ApplicationStage.HIRED):
        raise InvalidTransition(stage.value, ApplicationStage.HIRED.value)

    job = await session.get(Job, application.job_id)
    fees = calculate_fees(salary, job.fee_percentage)
    hired_at = now()

    moved_to_hired = stage is ApplicationStage.OFFER
    if moved_to_hired:
        application.stage = ApplicationStage.HIRED
        actor_id, role = actor_reference(capabilities)
        session.add(
            ApplicationAuditLog(
                application_id=application.id,
                action=AuditAction.HIRED,
                performed_by_actor_id=actor_id,
                performed_by_role=role,
                company_id=company_id,
                old_value={"stage": stage.value},
                new_value={"stage": ApplicationStage.HIRED.value},
                audit_metadata={"salary": salary},
            )
        )

    placement = Placement(
        application_id=application.id,
        job_id=application.job_id,
        candidate_id=application.candidate_id,
        company_id=company_id,
        recruiter_id=application.recruiter_id,
        salary=round_money(salary),
        fee_percentage=job.fee_percentage,
        state=PlacementState.HIRED,
        hired_at=hired_at,
        guarantee_days=job.guarantee_days,
        **fees,
    )
    session.add(placement)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        existing = await _existing_placement(session, application_id)
        if existing is None:
            raise
        logger.info(f"Placement for application {application_id} created concurrently")
        return placement_to_dict(existing)

    logger.info(
        f"Created placement {placement.id} for application {application_id}",
        extra={"placement_id": placement.id, "application_id": application_id},
    )
    result = placement_to_dict(placement)
    if moved_to_hired:
        actor_id, role = actor_reference(capabilities)
        await publisher.publish(
            EventType.APPLICATION_STAGE_CHANGED,
            {
                "application_id": application_id,
                "old_stage": stage.value,
                "new_stage": ApplicationStage.HIRED.value,
                "actor_id": actor_id,
                "actor_role": role,
            },
        )
    await publisher.publish(EventType.PLACEMENT_CREATED, result)
    return result


def _validate_move(placement: Placement, target: PlacementState) -> PlacementState:
    current = PlacementState(placement.state)
    if target not in PLACEMENT_TRANSITIONS.get(current, set()):
        raise InvalidTransition(current.value, target.value, entity="placement")
    return current


async def _apply_move(
    session: AsyncSession,
    placement: Placement,
    target: PlacementState,
    event_type: str,
    publisher: Optional[EventPublisher],
) -> Dict[str, Any]:
    publisher = publisher or get_event_publisher()
    previous = PlacementState(placement.state)
    placement.state = target
    await session.commit()
    await session.refresh(placement)

    logger.info(
        f"Placement {placement.id} moved {previous.value} -> {target.value}",
        extra={"placement_id": placement.id},
    )
    result = placement_to_dict(placement)
    await publisher.publish(event_type, result)
    return result


async def activate_placement(
    session: AsyncSession,
    placement_id: int,
    start_date: datetime,
    capabilities: CapabilitySet,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    """Mark the candidate as started; the guarantee period runs from the start date."""
    placement = await ensure_can_manage_placement(session, capabilities, placement_id)
    _validate_move(placement, PlacementState.ACTIVE)

    start_date = ensure_aware(start_date)
    placement.start_date = start_date
    placement.guarantee_expires_at = add_days(start_date, placement.guarantee_days)
    return await _apply_move(
        session, placement, PlacementState.ACTIVE, EventType.PLACEMENT_ACTIVATED, publisher
    )


async def complete_placement(
    session: AsyncSession,
    placement_id: int,
    capabilities: CapabilitySet,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    placement = await ensure_can_manage_placement(session, capabilities, placement_id)
    _validate_move(placement, PlacementState.COMPLETED)
    return await _apply_move(
        session, placement, PlacementState.COMPLETED, EventType.PLACEMENT_COMPLETED, publisher
    )


async def fail_placement(
    session: AsyncSession,
    placement_id: int,
    reason: str,
    capabilities: CapabilitySet,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    """Record that a hire fell through, before or during the guarantee period."""
    placement = await ensure_can_manage_placement(session, capabilities, placement_id)
    _validate_move(placement, PlacementState.FAILED)

    placement.failure_reason = reason
    placement.failed_at = now()
    return await _apply_move(
        session, placement, PlacementState.FAILED, EventType.PLACEMENT_FAILED, publisher
    )
