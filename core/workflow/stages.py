"""
Application stage machine and proposal derivations.

Everything here is a pure function of stored fields, so it can be tested
without a database. Storage-bound operations live in
``api.services.applications`` and ``api.services.proposals``.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum as PyEnum
from typing import Dict, FrozenSet, Optional

from core.access.capabilities import CapabilitySet
from core.config import settings
from core.exceptions import InvalidTransition
from core.utils.datetime import ensure_aware, hours_between, now as utc_now
from database.models.applications import ApplicationStage


# ==================== Enums ===================== #
class ProposalType(str, PyEnum):
    JOB_OPPORTUNITY = "job_opportunity"
    DIRECT_APPLICATION = "direct_application"
    APPLICATION_SCREEN = "application_screen"
    APPLICATION_REVIEW = "application_review"
    COLLABORATION = "collaboration"
    JOB_OFFER = "job_offer"


class ActionParty(str, PyEnum):
    CANDIDATE = "candidate"
    RECRUITER = "recruiter"
    COMPANY = "company"
    NONE = "none"


class PendingActionType(str, PyEnum):
    RESPOND = "respond"
    COMPLETE_APPLICATION = "complete_application"
    SCREEN = "screen"
    REVIEW = "review"
    INTERVIEW = "interview"
    FINALIZE_OFFER = "finalize_offer"
    NONE = "none"


# ==================== Transitions ===================== #
TERMINAL_STAGES: FrozenSet[ApplicationStage] = frozenset(
    {ApplicationStage.HIRED, ApplicationStage.REJECTED, ApplicationStage.WITHDRAWN}
)

_EXITS = frozenset({ApplicationStage.REJECTED, ApplicationStage.WITHDRAWN})

ALLOWED_TRANSITIONS: Dict[ApplicationStage, FrozenSet[ApplicationStage]] = {
    ApplicationStage.RECRUITER_PROPOSED: frozenset(
        {ApplicationStage.DRAFT, ApplicationStage.SCREEN, ApplicationStage.SUBMITTED}
    )
    | _EXITS,
    ApplicationStage.DRAFT: frozenset(
        {ApplicationStage.AI_REVIEW, ApplicationStage.SCREEN, ApplicationStage.SUBMITTED}
    )
    | _EXITS,
    ApplicationStage.AI_REVIEW: frozenset(
        {ApplicationStage.DRAFT, ApplicationStage.SCREEN, ApplicationStage.SUBMITTED}
    )
    | _EXITS,
    ApplicationStage.SCREEN: frozenset(
        {ApplicationStage.DRAFT, ApplicationStage.SUBMITTED}
    )
    | _EXITS,
    ApplicationStage.SUBMITTED: frozenset(
        {ApplicationStage.SCREEN, ApplicationStage.INTERVIEW, ApplicationStage.OFFER}
    )
    | _EXITS,
    ApplicationStage.INTERVIEW: frozenset({ApplicationStage.OFFER}) | _EXITS,
    ApplicationStage.OFFER: frozenset(
        {ApplicationStage.INTERVIEW, ApplicationStage.HIRED}
    )
    | _EXITS,
}


def is_terminal(stage: ApplicationStage | str) -> bool:
    return ApplicationStage(stage) in TERMINAL_STAGES


def can_transition(current: ApplicationStage | str, requested: ApplicationStage | str) -> bool:
    """Check whether a stage change is allowed."""
    allowed = ALLOWED_TRANSITIONS.get(ApplicationStage(current), frozenset())
    return ApplicationStage(requested) in allowed


def validate_transition(
    current: ApplicationStage | str, requested: ApplicationStage | str
) -> ApplicationStage:
    """
    Validate a stage change.

    Args:
        current: Stored stage
        requested: Stage being moved to

    Returns:
        The requested stage as an ApplicationStage

    Raises:
        InvalidTransition: If the move is not in the transition table
        ValueError: If either value is not a known stage
    """
    current = ApplicationStage(current)
    requested = ApplicationStage(requested)
    if not can_transition(current, requested):
        raise InvalidTransition(current.value, requested.value)
    return requested


# ==================== Derivations ===================== #
def proposal_type(stage: ApplicationStage | str, has_recruiter: bool) -> ProposalType:
    """
    Classify an application as a proposal.

    Args:
        stage: Current stage
        has_recruiter: Whether a recruiter represents the candidate

    Returns:
        ProposalType
    """
    stage = ApplicationStage(stage)
    if stage is ApplicationStage.RECRUITER_PROPOSED:
        return ProposalType.JOB_OPPORTUNITY
    if stage is ApplicationStage.DRAFT:
        return ProposalType.DIRECT_APPLICATION
    if stage is ApplicationStage.AI_REVIEW:
        return (
            ProposalType.APPLICATION_SCREEN
            if has_recruiter
            else ProposalType.DIRECT_APPLICATION
        )
    if stage is ApplicationStage.SCREEN:
        return (
            ProposalType.COLLABORATION if has_recruiter else ProposalType.APPLICATION_SCREEN
        )
    if stage is ApplicationStage.INTERVIEW:
        return ProposalType.APPLICATION_REVIEW
    if stage is ApplicationStage.OFFER:
        return ProposalType.JOB_OFFER
    # submitted and terminal stages
    return (
        ProposalType.APPLICATION_REVIEW if has_recruiter else ProposalType.DIRECT_APPLICATION
    )


_PENDING_PARTY: Dict[ApplicationStage, ActionParty] = {
    ApplicationStage.RECRUITER_PROPOSED: ActionParty.CANDIDATE,
    ApplicationStage.DRAFT: ActionParty.CANDIDATE,
    ApplicationStage.SCREEN: ActionParty.RECRUITER,
    ApplicationStage.SUBMITTED: ActionParty.COMPANY,
    ApplicationStage.INTERVIEW: ActionParty.COMPANY,
    ApplicationStage.OFFER: ActionParty.COMPANY,
}


def pending_action_party(stage: ApplicationStage | str) -> ActionParty:
    """Who must act next."""
    return _PENDING_PARTY.get(ApplicationStage(stage), ActionParty.NONE)


_PENDING_ACTION: Dict[ApplicationStage, PendingActionType] = {
    ApplicationStage.RECRUITER_PROPOSED: PendingActionType.RESPOND,
    ApplicationStage.DRAFT: PendingActionType.COMPLETE_APPLICATION,
    ApplicationStage.SCREEN: PendingActionType.SCREEN,
    ApplicationStage.SUBMITTED: PendingActionType.REVIEW,
    ApplicationStage.INTERVIEW: PendingActionType.INTERVIEW,
    ApplicationStage.OFFER: PendingActionType.FINALIZE_OFFER,
}


def pending_action_type(stage: ApplicationStage | str) -> PendingActionType:
    """What the pending party has to do."""
    return _PENDING_ACTION.get(ApplicationStage(stage), PendingActionType.NONE)


@dataclass(frozen=True)
class StatusBadge:
    text: str
    color: str
    icon: str

    def to_dict(self) -> Dict[str, str]:
        return {"text": self.text, "color": self.color, "icon": self.icon}


_BADGES: Dict[ApplicationStage, StatusBadge] = {
    ApplicationStage.RECRUITER_PROPOSED: StatusBadge("Pending Response", "warning", "clock"),
    ApplicationStage.DRAFT: StatusBadge("In Progress", "info", "pencil"),
    ApplicationStage.AI_REVIEW: StatusBadge("AI Reviewing", "info", "robot"),
    ApplicationStage.SCREEN: StatusBadge("Screening", "info", "phone"),
    ApplicationStage.SUBMITTED: StatusBadge("Under Review", "info", "eye"),
    ApplicationStage.INTERVIEW: StatusBadge("Interview Stage", "info", "calendar"),
    ApplicationStage.OFFER: StatusBadge("Offer Extended", "success", "handshake"),
    ApplicationStage.HIRED: StatusBadge("Hired", "success", "check-circle"),
    ApplicationStage.REJECTED: StatusBadge("Declined", "error", "times-circle"),
    ApplicationStage.WITHDRAWN: StatusBadge("Withdrawn", "neutral", "ban"),
}


def status_badge(stage: ApplicationStage | str) -> StatusBadge:
    return _BADGES[ApplicationStage(stage)]


_ACTION_LABELS: Dict[ProposalType, str] = {
    ProposalType.JOB_OPPORTUNITY: "Review Opportunity",
    ProposalType.APPLICATION_SCREEN: "Conduct Screen",
    ProposalType.APPLICATION_REVIEW: "Review Application",
    ProposalType.COLLABORATION: "Review Proposal",
    ProposalType.JOB_OFFER: "Review Offer",
}


def action_label(kind: ProposalType | str) -> str:
    return _ACTION_LABELS.get(ProposalType(kind), "Take Action")


def can_act(
    capabilities: CapabilitySet,
    party: ActionParty | str,
    candidate_id: Optional[int],
    recruiter_id: Optional[int],
    company_organization_id: Optional[int],
) -> bool:
    """
    Check whether the caller is the party expected to act.

    The caller's capability must match the pending party and the caller's id
    must match the row. Platform admins get no special treatment.

    Args:
        capabilities: Resolved caller capabilities
        party: Pending action party for the row
        candidate_id: Row's candidate id
        recruiter_id: Row's recruiter id
        company_organization_id: Organization owning the row's job

    Returns:
        True when the caller may act now
    """
    party = ActionParty(party)
    if party is ActionParty.CANDIDATE:
        return capabilities.candidate_id is not None and capabilities.candidate_id == candidate_id
    if party is ActionParty.RECRUITER:
        return capabilities.recruiter_id is not None and capabilities.recruiter_id == recruiter_id
    if party is ActionParty.COMPANY:
        return capabilities.belongs_to_organization(company_organization_id)
    return False


@dataclass(frozen=True)
class Urgency:
    is_urgent: bool
    is_overdue: bool
    hours_remaining: Optional[float] = None


def calculate_urgency(
    action_due_date: Optional[datetime],
    expires_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> Urgency:
    """
    Derive urgency from the action due date, falling back to the expiry.

    Args:
        action_due_date: When the pending party must act
        expires_at: When the proposal lapses
        now: Reference time (defaults to current UTC time)

    Returns:
        Urgency; overdue when the deadline has passed, urgent when it is less
        than ``URGENT_WINDOW_HOURS`` away, neither when there is no deadline
    """
    due = ensure_aware(action_due_date or expires_at)
    if due is None:
        return Urgency(is_urgent=False, is_overdue=False)

    hours_remaining = hours_between(ensure_aware(now or utc_now()), due)
    return Urgency(
        is_urgent=0 <= hours_remaining < settings.urgent_window_hours,
        is_overdue=hours_remaining < 0,
        hours_remaining=round(hours_remaining, 2),
    )
