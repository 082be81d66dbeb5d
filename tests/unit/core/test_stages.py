"""
Tests for the application stage machine and proposal derivations.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.access.capabilities import CapabilitySet, MembershipGrant
from core.exceptions import InvalidTransition
from core.workflow.stages import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STAGES,
    ActionParty,
    PendingActionType,
    ProposalType,
    action_label,
    calculate_urgency,
    can_act,
    can_transition,
    is_terminal,
    pending_action_party,
    pending_action_type,
    proposal_type,
    status_badge,
    validate_transition,
)
from database.models.applications import ApplicationStage
from database.models.organizations import MembershipRole

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestTransitions:
    """Stage changes."""

    @pytest.mark.parametrize("current,requested", [
        (ApplicationStage.RECRUITER_PROPOSED, ApplicationStage.SUBMITTED),
        (ApplicationStage.DRAFT, ApplicationStage.AI_REVIEW),
        (ApplicationStage.SUBMITTED, ApplicationStage.INTERVIEW),
        (ApplicationStage.INTERVIEW, ApplicationStage.OFFER),
        (ApplicationStage.OFFER, ApplicationStage.HIRED),
        (ApplicationStage.SCREEN, ApplicationStage.REJECTED),
        (ApplicationStage.DRAFT, ApplicationStage.WITHDRAWN),
    ])
    def test_allowed(self, current, requested):
        assert can_transition(current, requested)
        assert validate_transition(current, requested) is requested

    @pytest.mark.parametrize("current,requested", [
        (ApplicationStage.RECRUITER_PROPOSED, ApplicationStage.OFFER),
        (ApplicationStage.DRAFT, ApplicationStage.HIRED),
        (ApplicationStage.INTERVIEW, ApplicationStage.DRAFT),
        (ApplicationStage.SUBMITTED, ApplicationStage.SUBMITTED),
    ])
    def test_disallowed(self, current, requested):
        assert not can_transition(current, requested)
        with pytest.raises(InvalidTransition):
            validate_transition(current, requested)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STAGES, key=lambda s: s.value))
    def test_terminal_stages_have_no_exits(self, terminal):
        assert is_terminal(terminal)
        assert terminal not in ALLOWED_TRANSITIONS
        for stage in ApplicationStage:
            with pytest.raises(InvalidTransition) as exc_info:
                validate_transition(terminal, stage)
            assert exc_info.value.current == terminal.value

    def test_every_open_stage_can_exit(self):
        for stage, targets in ALLOWED_TRANSITIONS.items():
            assert ApplicationStage.REJECTED in targets, stage
            assert ApplicationStage.WITHDRAWN in targets, stage

    def test_accepts_strings(self):
        assert validate_transition("offer", "hired") is ApplicationStage.HIRED

    def test_unknown_stage_raises_value_error(self):
        with pytest.raises(ValueError):
            validate_transition("draft", "celebrating")


class TestProposalType:
    @pytest.mark.parametrize("stage,has_recruiter,expected", [
        (ApplicationStage.RECRUITER_PROPOSED, True, ProposalType.JOB_OPPORTUNITY),
        (ApplicationStage.DRAFT, False, ProposalType.DIRECT_APPLICATION),
        (ApplicationStage.AI_REVIEW, True, ProposalType.APPLICATION_SCREEN),
        (ApplicationStage.AI_REVIEW, False, ProposalType.DIRECT_APPLICATION),
        (ApplicationStage.SCREEN, True, ProposalType.COLLABORATION),
        (ApplicationStage.SCREEN, False, ProposalType.APPLICATION_SCREEN),
        (ApplicationStage.SUBMITTED, True, ProposalType.APPLICATION_REVIEW),
        (ApplicationStage.SUBMITTED, False, ProposalType.DIRECT_APPLICATION),
        (ApplicationStage.INTERVIEW, False, ProposalType.APPLICATION_REVIEW),
        (ApplicationStage.OFFER, True, ProposalType.JOB_OFFER),
        (ApplicationStage.HIRED, True, ProposalType.APPLICATION_REVIEW),
    ])
    def test_mapping(self, stage, has_recruiter, expected):
        assert proposal_type(stage, has_recruiter) is expected

    @pytest.mark.parametrize("kind,label", [
        (ProposalType.JOB_OPPORTUNITY, "Review Opportunity"),
        (ProposalType.APPLICATION_SCREEN, "Conduct Screen"),
        (ProposalType.APPLICATION_REVIEW, "Review Application"),
        (ProposalType.COLLABORATION, "Review Proposal"),
        (ProposalType.JOB_OFFER, "Review Offer"),
        (ProposalType.DIRECT_APPLICATION, "Take Action"),
    ])
    def test_action_label(self, kind, label):
        assert action_label(kind) == label


class TestPendingAction:
    @pytest.mark.parametrize("stage,party,action", [
        (ApplicationStage.RECRUITER_PROPOSED, ActionParty.CANDIDATE, PendingActionType.RESPOND),
        (ApplicationStage.DRAFT, ActionParty.CANDIDATE, PendingActionType.COMPLETE_APPLICATION),
        (ApplicationStage.SCREEN, ActionParty.RECRUITER, PendingActionType.SCREEN),
        (ApplicationStage.SUBMITTED, ActionParty.COMPANY, PendingActionType.REVIEW),
        (ApplicationStage.INTERVIEW, ActionParty.COMPANY, PendingActionType.INTERVIEW),
        (ApplicationStage.OFFER, ActionParty.COMPANY, PendingActionType.FINALIZE_OFFER),
        (ApplicationStage.AI_REVIEW, ActionParty.NONE, PendingActionType.NONE),
        (ApplicationStage.HIRED, ActionParty.NONE, PendingActionType.NONE),
    ])
    def test_party_and_action(self, stage, party, action):
        assert pending_action_party(stage) is party
        assert pending_action_type(stage) is action

    def test_every_stage_has_a_badge(self):
        for stage in ApplicationStage:
            badge = status_badge(stage).to_dict()
            assert set(badge) == {"text", "color", "icon"}
        assert status_badge("offer").color == "success"


class TestCanAct:
    """The caller must hold the pending party's capability for this row."""

    company_caps = CapabilitySet(
        user_id=1,
        organization_memberships=(MembershipGrant(9, MembershipRole.HIRING_MANAGER),),
    )

    def test_candidate_party(self):
        assert can_act(CapabilitySet(user_id=2, candidate_id=5), ActionParty.CANDIDATE, 5, 7, 9)
        assert not can_act(CapabilitySet(user_id=2, candidate_id=6), ActionParty.CANDIDATE, 5, 7, 9)
        assert not can_act(self.company_caps, ActionParty.CANDIDATE, 5, 7, 9)

    def test_recruiter_party(self):
        assert can_act(CapabilitySet(user_id=3, recruiter_id=7), ActionParty.RECRUITER, 5, 7, 9)
        assert not can_act(CapabilitySet(user_id=3, recruiter_id=8), ActionParty.RECRUITER, 5, 7, 9)
        assert not can_act(CapabilitySet(user_id=3, recruiter_id=8), ActionParty.RECRUITER, 5, None, 9)

    def test_company_party(self):
        assert can_act(self.company_caps, ActionParty.COMPANY, 5, 7, 9)
        assert not can_act(self.company_caps, ActionParty.COMPANY, 5, 7, 10)

    def test_admin_gets_no_special_treatment(self):
        admin = CapabilitySet(user_id=4, is_platform_admin=True)
        for party in ActionParty:
            assert not can_act(admin, party, 5, 7, 9)

    def test_nobody_acts_on_none(self):
        assert not can_act(CapabilitySet(user_id=2, candidate_id=5), ActionParty.NONE, 5, 7, 9)


class TestUrgency:
    def test_overdue(self):
        urgency = calculate_urgency(NOW - timedelta(hours=1), None, NOW)
        assert urgency.is_overdue
        assert not urgency.is_urgent
        assert urgency.hours_remaining == -1.0

    def test_urgent(self):
        urgency = calculate_urgency(NOW + timedelta(hours=12), None, NOW)
        assert urgency.is_urgent
        assert not urgency.is_overdue
        assert urgency.hours_remaining == 12.0

    def test_not_urgent_beyond_window(self):
        urgency = calculate_urgency(NOW + timedelta(hours=48), None, NOW)
        assert not urgency.is_urgent
        assert not urgency.is_overdue

    def test_no_deadline(self):
        urgency = calculate_urgency(None, None, NOW)
        assert not urgency.is_urgent
        assert not urgency.is_overdue
        assert urgency.hours_remaining is None

    def test_falls_back_to_expiry(self):
        urgency = calculate_urgency(None, NOW + timedelta(hours=2), NOW)
        assert urgency.is_urgent

    def test_due_date_wins_over_expiry(self):
        urgency = calculate_urgency(NOW + timedelta(hours=72), NOW - timedelta(hours=1), NOW)
        assert not urgency.is_overdue

    def test_naive_datetimes_are_utc(self):
        urgency = calculate_urgency(datetime(2026, 3, 1, 18, 0), None, NOW)
        assert urgency.hours_remaining == 6.0
