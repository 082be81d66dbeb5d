"""
Candidate PII masking for company viewers.

Masking happens on the way out; stored rows are never redacted. A company
sees initials and a placeholder address until it accepts the application.
"""

from typing import Any, Dict, Optional

from core.access.capabilities import CapabilitySet
from core.config import settings
from core.utils.datetime import to_iso
from core.utils.formatting import format_initials_from_full_name

# Fields removed from masked candidates
REDACTED_FIELDS = ("phone", "linkedin_url", "github_url", "portfolio_url")


def serialize_candidate(candidate: Any) -> Dict[str, Any]:
    """Convert a candidate row to a response dict."""
    return {
        "id": candidate.id,
        "user_id": candidate.user_id,
        "full_name": candidate.full_name,
        "email": candidate.email,
        "phone": candidate.phone,
        "location": candidate.location,
        "current_title": candidate.current_title,
        "current_company": candidate.current_company,
        "linkedin_url": candidate.linkedin_url,
        "github_url": candidate.github_url,
        "portfolio_url": candidate.portfolio_url,
        "created_at": to_iso(candidate.created_at),
        "updated_at": to_iso(candidate.updated_at),
    }


def mask_candidate(candidate: Dict[str, Any]) -> Dict[str, Any]:
    """
    Redact identifying fields from a serialized candidate.

    Args:
        candidate: Serialized candidate

    Returns:
        Copy with initials for the name, the placeholder email, links and
        phone removed, and ``_masked`` set
    """
    masked = dict(candidate)
    masked["full_name"] = format_initials_from_full_name(candidate.get("full_name"))
    masked["email"] = settings.masked_email
    for name in REDACTED_FIELDS:
        masked[name] = None
    masked["_masked"] = True
    return masked


def should_mask(
    capabilities: CapabilitySet,
    accepted_by_company: bool,
    candidate_id: Optional[int],
    recruiter_id: Optional[int],
    company_organization_id: Optional[int],
) -> bool:
    """
    Decide whether a candidate must be masked for this viewer.

    Only company viewers of a not-yet-accepted application see masked data.
    Admins, the representing recruiter and the candidate see everything.
    """
    if accepted_by_company or capabilities.is_platform_admin:
        return False
    if recruiter_id is not None and capabilities.recruiter_id == recruiter_id:
        return False
    if candidate_id is not None and capabilities.candidate_id == candidate_id:
        return False
    return capabilities.belongs_to_organization(company_organization_id)
