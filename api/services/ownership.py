"""
Candidate ownership service.

The first actor to source a candidate owns them for a protection window.
Claims are append-only; the newest claim is the current one. Concurrent first
claims collide on the ``(candidate_id, claim_sequence)`` unique constraint and
the loser is told the candidate is already owned.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.events import EventPublisher, EventType, get_event_publisher
from core.exceptions import AlreadyOwned, Forbidden, NotFound
from core.utils.datetime import add_days, ensure_aware, is_past, now, to_iso
from database.models.candidates import (
    Candidate,
    CandidateOutreach,
    CandidateSourcer,
    OutreachEvent,
    SourcerType,
)

logger = logging.getLogger(__name__)

FIRST_OUTREACH_NOTE = "first outreach"


# ==================== Helpers ===================== #
def sourcer_to_dict(sourcer: CandidateSourcer) -> Dict[str, Any]:
    return {
        "id": sourcer.id,
        "candidate_id": sourcer.candidate_id,
        "sourcer_actor_id": sourcer.sourcer_actor_id,
        "sourcer_type": SourcerType(sourcer.sourcer_type).value,
        "claim_sequence": sourcer.claim_sequence,
        "sourced_at": to_iso(sourcer.sourced_at),
        "protection_window_days": sourcer.protection_window_days,
        "protection_expires_at": to_iso(sourcer.protection_expires_at),
        "is_active": is_protection_active(sourcer),
        "notes": sourcer.notes,
    }


def outreach_to_dict(outreach: CandidateOutreach) -> Dict[str, Any]:
    return {
        "id": outreach.id,
        "candidate_id": outreach.candidate_id,
        "recruiter_actor_id": outreach.recruiter_actor_id,
        "job_id": outreach.job_id,
        "email_subject": outreach.email_subject,
        "email_body": outreach.email_body,
        "sent_at": to_iso(outreach.sent_at),
        "opened_at": to_iso(outreach.opened_at),
        "clicked_at": to_iso(outreach.clicked_at),
        "replied_at": to_iso(outreach.replied_at),
        "unsubscribed_at": to_iso(outreach.unsubscribed_at),
        "bounced": outreach.bounced,
    }


def is_protection_active(
    sourcer: CandidateSourcer, reference: Optional[datetime] = None
) -> bool:
    """A claim protects the candidate until its expiry instant."""
    return not is_past(sourcer.protection_expires_at, reference)


def _is_same_actor(
    sourcer: CandidateSourcer, actor_id: int, sourcer_type: SourcerType
) -> bool:
    return sourcer.sourcer_actor_id == actor_id and SourcerType(
        sourcer.sourcer_type
    ) == SourcerType(sourcer_type)


async def latest_sourcer(
    session: AsyncSession, candidate_id: int
) -> Optional[CandidateSourcer]:
    result = await session.execute(
        select(CandidateSourcer)
        .where(CandidateSourcer.candidate_id == candidate_id)
        .order_by(CandidateSourcer.claim_sequence.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _require_candidate(session: AsyncSession, candidate_id: int) -> Candidate:
    candidate = await session.get(Candidate, candidate_id)
    if candidate is None:
        raise NotFound("Candidate", candidate_id)
    return candidate


# ==================== Ownership ===================== #
async def get_candidate_sourcer(
    session: AsyncSession, candidate_id: int
) -> Optional[Dict[str, Any]]:
    """
    Get the current sourcing claim on a candidate.

    Args:
        session: Database session
        candidate_id: The candidate ID

    Returns:
        Latest claim (active or expired), or None if never sourced
    """
    sourcer = await latest_sourcer(session, candidate_id)
    return sourcer_to_dict(sourcer) if sourcer else None


async def check_can_work(
    session: AsyncSession,
    candidate_id: int,
    actor_id: int,
    sourcer_type: SourcerType = SourcerType.RECRUITER,
) -> bool:
    """
    Check whether an actor may work a candidate.

    True when nobody sourced the candidate, the protection window lapsed, or
    the actor is the sourcer.
    """
    sourcer = await latest_sourcer(session, candidate_id)
    if sourcer is None or not is_protection_active(sourcer):
        return True
    return _is_same_actor(sourcer, actor_id, sourcer_type)


async def establish_ownership(
    session: AsyncSession,
    candidate_id: int,
    sourcer_id: int,
    sourcer_type: SourcerType = SourcerType.RECRUITER,
    window_days: Optional[int] = None,
    notes: Optional[str] = None,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    """
    Claim a candidate for an actor.

    Args:
        session: Database session
        candidate_id: The candidate ID
        sourcer_id: recruiters.id for recruiters, users.id for platform sourcers
        sourcer_type: Kind of sourcer
        window_days: Protection window (defaults to DEFAULT_PROTECTION_WINDOW_DAYS)
        notes: Optional sourcing notes
        publisher: Event publisher

    Returns:
        The winning claim. Re-claiming by the current owner returns the
        existing claim unchanged.

    Raises:
        NotFound: Unknown candidate
        AlreadyOwned: Another actor holds an active claim
        ValueError: Non-positive window
    """
    if window_days is None:
        window_days = settings.default_protection_window_days
    if window_days <= 0:
        raise ValueError("Protection window must be positive")
    sourcer_type = SourcerType(sourcer_type)
    publisher = publisher or get_event_publisher()

    await _require_candidate(session, candidate_id)

    for attempt in range(settings.ownership_conflict_retries):
        current = await latest_sourcer(session, candidate_id)
        if current is not None and is_protection_active(current):
            if _is_same_actor(current, sourcer_id, sourcer_type):
                return sourcer_to_dict(current)
            logger.warning(
                f"Candidate {candidate_id} already owned by actor {current.sourcer_actor_id}",
                extra={"candidate_id": candidate_id},
            )
            raise AlreadyOwned(
                candidate_id,
                current.sourcer_actor_id,
                to_iso(current.protection_expires_at),
            )

        sourced_at = now()
        claim = CandidateSourcer(
            candidate_id=candidate_id,
            claim_sequence=(current.claim_sequence + 1) if current else 1,
            sourcer_actor_id=sourcer_id,
            sourcer_type=sourcer_type,
            sourced_at=sourced_at,
            protection_window_days=window_days,
            protection_expires_at=add_days(sourced_at, window_days),
            notes=notes,
        )
        session.add(claim)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.info(
                f"Concurrent claim on candidate {candidate_id}, re-reading (attempt {attempt + 1})",
                extra={"candidate_id": candidate_id},
            )
            continue

        logger.info(
            f"Candidate {candidate_id} sourced by {sourcer_type.value} {sourcer_id}",
            extra={"candidate_id": candidate_id},
        )
        result = sourcer_to_dict(claim)
        await publisher.publish(EventType.CANDIDATE_SOURCED, result)
        return result

    # Out of retries: whoever holds the newest claim won
    current = await latest_sourcer(session, candidate_id)
    if current is not None and _is_same_actor(current, sourcer_id, sourcer_type):
        return sourcer_to_dict(current)
    raise AlreadyOwned(
        candidate_id,
        current.sourcer_actor_id if current else None,
        to_iso(current.protection_expires_at) if current else None,
    )


async def update_sourcer_notes(
    session: AsyncSession,
    candidate_id: int,
    actor_id: int,
    notes: Optional[str],
    sourcer_type: SourcerType = SourcerType.RECRUITER,
) -> Dict[str, Any]:
    """Correct the notes on the current claim. Only the sourcer may do this."""
    sourcer = await latest_sourcer(session, candidate_id)
    if sourcer is None:
        raise NotFound("CandidateSourcer", candidate_id)
    if not _is_same_actor(sourcer, actor_id, sourcer_type):
        raise Forbidden("Only the sourcer can update sourcing notes")

    sourcer.notes = notes
    await session.commit()
    return sourcer_to_dict(sourcer)


# ==================== Outreach ===================== #
async def record_outreach(
    session: AsyncSession,
    candidate_id: int,
    recruiter_actor_id: int,
    subject: str,
    body: str,
    job_id: Optional[int] = None,
    publisher: Optional[EventPublisher] = None,
) -> Dict[str, Any]:
    """
    Record an outreach email and claim the candidate if nobody has yet.

    Losing the claim race does not stop the outreach from being recorded.

    Args:
        session: Database session
        candidate_id: The candidate ID
        recruiter_actor_id: Recruiter sending the email
        subject: Email subject
        body: Email body
        job_id: Job the outreach is about, if any
        publisher: Event publisher

    Returns:
        The outreach record
    """
    publisher = publisher or get_event_publisher()
    await _require_candidate(session, candidate_id)

    if await latest_sourcer(session, candidate_id) is None:
        try:
            await establish_ownership(
                session,
                candidate_id,
                recruiter_actor_id,
                SourcerType.RECRUITER,
                window_days=settings.default_protection_window_days,
                notes=FIRST_OUTREACH_NOTE,
                publisher=publisher,
            )
        except AlreadyOwned as e:
            logger.info(
                f"Outreach to candidate {candidate_id} without ownership, owner is {e.owner_actor_id}",
                extra={"candidate_id": candidate_id},
            )

    outreach = CandidateOutreach(
        candidate_id=candidate_id,
        recruiter_actor_id=recruiter_actor_id,
        job_id=job_id,
        email_subject=subject,
        email_body=body,
        sent_at=now(),
    )
    session.add(outreach)
    await session.commit()

    result = outreach_to_dict(outreach)
    await publisher.publish(
        EventType.CANDIDATE_OUTREACH_SENT,
        {
            "outreach_id": outreach.id,
            "candidate_id": candidate_id,
            "recruiter_actor_id": recruiter_actor_id,
            "job_id": job_id,
        },
    )
    return result


_ENGAGEMENT_FIELDS = {
    OutreachEvent.OPENED: "opened_at",
    OutreachEvent.CLICKED: "clicked_at",
    OutreachEvent.REPLIED: "replied_at",
    OutreachEvent.UNSUBSCRIBED: "unsubscribed_at",
}


async def record_outreach_engagement(
    session: AsyncSession,
    outreach_id: int,
    event: OutreachEvent | str,
    occurred_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Apply an engagement signal to an outreach record.

    The first timestamp for each signal wins; repeats are ignored.
    """
    event = OutreachEvent(event)
    outreach = await session.get(CandidateOutreach, outreach_id)
    if outreach is None:
        raise NotFound("CandidateOutreach", outreach_id)

    if event is OutreachEvent.BOUNCED:
        outreach.bounced = True
    else:
        field = _ENGAGEMENT_FIELDS[event]
        if getattr(outreach, field) is None:
            setattr(outreach, field, ensure_aware(occurred_at) or now())

    await session.commit()
    return outreach_to_dict(outreach)


async def list_outreach(
    session: AsyncSession,
    candidate_id: Optional[int] = None,
    recruiter_actor_id: Optional[int] = None,
    job_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """List outreach records, newest first."""
    query = select(CandidateOutreach)
    if candidate_id is not None:
        query = query.where(CandidateOutreach.candidate_id == candidate_id)
    if recruiter_actor_id is not None:
        query = query.where(CandidateOutreach.recruiter_actor_id == recruiter_actor_id)
    if job_id is not None:
        query = query.where(CandidateOutreach.job_id == job_id)
    query = query.order_by(CandidateOutreach.sent_at.desc(), CandidateOutreach.id.desc())

    result = await session.execute(query)
    return [outreach_to_dict(row) for row in result.scalars().all()]
