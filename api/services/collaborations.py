"""
Collaboration service functions.

Recruiters sharing a placement fee. The split total per placement is
re-checked inside the inserting transaction, with the placement row locked.
"""

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.events import EventPublisher, EventType, get_event_publisher
from core.exceptions import NotFound, SplitOverflow
from core.utils.datetime import to_iso
from core.utils.formatting import round_money
from database.models.placements import (
    CollaboratorRole,
    Placement,
    PlacementCollaborator,
)

logger = logging.getLogger(__name__)

MAX_SPLIT_TOTAL = 100.0


def collaborator_to_dict(collaborator: PlacementCollaborator) -> Dict[str, Any]:
    return {
        "id": collaborator.id,
        "placement_id": collaborator.placement_id,
        "recruiter_actor_id": collaborator.recruiter_actor_id,
        "role": CollaboratorRole(collaborator.role).value,
        "split_percentage": collaborator.split_percentage,
        "split_amount": collaborator.split_amount,
        "notes": collaborator.notes,
        "created_at": to_iso(collaborator.created_at),
    }


async def _split_total(session: AsyncSession, placement_id: int) -> float:
    result = await session.execute(
        select(func.coalesce(func.sum(PlacementCollaborator.split_percentage), 0.0)).where(
            PlacementCollaborator.placement_id == placement_id
        )
    )
    return round_money(result.scalar_one())


async def add_collaborator(
    session: AsyncSession,
    placement_id: int,
    actor_id: int,
    role: CollaboratorRole | str,
    split_percentage: float,
    split_amount: float,
    notes: Optional[str] = None,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    """
    Add a recruiter to a placement's fee split.

    Args:
        session: Database session
        placement_id: The placement ID
        actor_id: Recruiter receiving the split
        role: Contribution the recruiter made
        split_percentage: Share of the recruiter fee, 0-100
        split_amount: Amount paid for the share
        notes: Optional notes
        publisher: Event publisher

    Returns:
        The collaborator record

    Raises:
        NotFound: Unknown placement
        SplitOverflow: Total split would exceed 100%; nothing is written
        ValueError: Percentage or amount out of range
    """
    role = CollaboratorRole(role)
    if not 0 < split_percentage <= MAX_SPLIT_TOTAL:
        raise ValueError("Split percentage must be greater than 0 and at most 100")
    if split_amount < 0:
        raise ValueError("Split amount must not be negative")
    publisher = publisher or get_event_publisher()

    # Serializes concurrent adds on the same placement
    locked = await session.execute(
        select(Placement.id).where(Placement.id == placement_id).with_for_update()
    )
    if locked.scalar_one_or_none() is None:
        await session.rollback()
        raise NotFound("Placement", placement_id)

    current_total = await _split_total(session, placement_id)
    if round_money(current_total + split_percentage) > MAX_SPLIT_TOTAL:
        await session.rollback()
        logger.warning(
            f"Split overflow on placement {placement_id}: {current_total}% + {split_percentage}%",
            extra={"placement_id": placement_id},
        )
        raise SplitOverflow(placement_id, current_total, split_percentage)

    collaborator = PlacementCollaborator(
        placement_id=placement_id,
        recruiter_actor_id=actor_id,
        role=role,
        split_percentage=round_money(split_percentage),
        split_amount=round_money(split_amount),
        notes=notes,
    )
    session.add(collaborator)
    await session.flush()

    # Stores without row locks: re-check with our row included
    new_total = await _split_total(session, placement_id)
    if new_total > MAX_SPLIT_TOTAL:
        await session.rollback()
        logger.warning(
            f"Concurrent split overflow on placement {placement_id}",
            extra={"placement_id": placement_id},
        )
        raise SplitOverflow(placement_id, round_money(new_total - split_percentage), split_percentage)

    await session.commit()

    logger.info(
        f"Recruiter {actor_id} joined placement {placement_id} as {role.value} ({split_percentage}%)",
        extra={"placement_id": placement_id},
    )
    result = collaborator_to_dict(collaborator)
    await publisher.publish(EventType.COLLABORATION_ACCEPTED, result)
    return result


async def list_collaborators(
    session: AsyncSession, placement_id: int
) -> List[Dict[str, Any]]:
    """List a placement's collaborators in the order they joined."""
    result = await session.execute(
        select(PlacementCollaborator)
        .where(PlacementCollaborator.placement_id == placement_id)
        .order_by(PlacementCollaborator.created_at, PlacementCollaborator.id)
    )
    return [collaborator_to_dict(row) for row in result.scalars().all()]


async def find_collaborations_by_recruiter(
    session: AsyncSession, actor_id: int
) -> List[Dict[str, Any]]:
    """List every placement split a recruiter takes part in, newest first."""
    result = await session.execute(
        select(PlacementCollaborator)
        .where(PlacementCollaborator.recruiter_actor_id == actor_id)
        .order_by(PlacementCollaborator.created_at.desc(), PlacementCollaborator.id.desc())
    )
    return [collaborator_to_dict(row) for row in result.scalars().all()]
