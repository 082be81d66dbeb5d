"""
API Services Layer.

Storage-bound operations behind the HTTP routes. Each function takes the
request's session (or the session factory for concurrent queries) and the
caller's resolved capabilities.
"""

from api.services.ownership import (
    establish_ownership,
    check_can_work,
    get_candidate_sourcer,
    update_sourcer_notes,
    record_outreach,
    record_outreach_engagement,
    list_outreach,
)

from api.services.candidates import (
    get_candidate,
    update_candidate,
)

from api.services.applications import (
    get_application,
    create_application,
    transition,
    accept_application,
    get_application_history,
)

from api.services.proposals import (
    list_proposals,
    get_proposal,
)

from api.services.collaborations import (
    add_collaborator,
    list_collaborators,
    find_collaborations_by_recruiter,
)

from api.services.placements import (
    create_placement,
    get_placement,
    activate_placement,
    complete_placement,
    fail_placement,
)

from api.services.listings import list_entities

__all__ = [
    # Ownership
    "establish_ownership",
    "check_can_work",
    "get_candidate_sourcer",
    "update_sourcer_notes",
    "record_outreach",
    "record_outreach_engagement",
    "list_outreach",
    # Candidates
    "get_candidate",
    "update_candidate",
    # Applications
    "get_application",
    "create_application",
    "transition",
    "accept_application",
    "get_application_history",
    # Proposals
    "list_proposals",
    "get_proposal",
    # Collaborations
    "add_collaborator",
    "list_collaborators",
    "find_collaborations_by_recruiter",
    # Placements
    "create_placement",
    "get_placement",
    "activate_placement",
    "complete_placement",
    "fail_placement",
    # Listings
    "list_entities",
]
