"""
Capability sets.

A caller may be a platform admin, a recruiter, a company member and a
candidate at the same time. The capability set keeps all of them so
single-record permission checks can use any of them, while listings pick one
by priority.
"""

from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Any, Iterable, List, Optional

from database.models.organizations import COMPANY_ROLES, MembershipRole


class CapabilityKind(str, PyEnum):
    """Capability that drives a scoped listing."""

    ADMIN = "admin"
    RECRUITER = "recruiter"
    COMPANY = "company"
    CANDIDATE = "candidate"
    NONE = "none"


@dataclass(frozen=True)
class MembershipGrant:
    """Qualifying organization membership."""

    organization_id: int
    role: MembershipRole


@dataclass(frozen=True)
class CapabilitySet:
    """Roles a resolved caller holds for one request. Never persisted."""

    user_id: Optional[int] = None
    is_platform_admin: bool = False
    recruiter_id: Optional[int] = None
    candidate_id: Optional[int] = None
    organization_memberships: tuple[MembershipGrant, ...] = field(default_factory=tuple)

    @property
    def organization_ids(self) -> List[int]:
        return [m.organization_id for m in self.organization_memberships]

    @property
    def is_recruiter(self) -> bool:
        return self.recruiter_id is not None

    @property
    def is_company_member(self) -> bool:
        return bool(self.organization_memberships)

    @property
    def is_candidate(self) -> bool:
        return self.candidate_id is not None

    @property
    def is_empty(self) -> bool:
        return not (
            self.is_platform_admin
            or self.is_recruiter
            or self.is_company_member
            or self.is_candidate
        )

    def belongs_to_organization(self, organization_id: Optional[int]) -> bool:
        """Check company membership in a specific organization."""
        if organization_id is None:
            return False
        return organization_id in self.organization_ids

    @property
    def primary_role(self) -> str:
        """Label used when recording who performed an action."""
        return select_listing_capability(self).value

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "is_platform_admin": self.is_platform_admin,
            "recruiter_id": self.recruiter_id,
            "candidate_id": self.candidate_id,
            "organization_memberships": [
                {"organization_id": m.organization_id, "role": m.role.value}
                for m in self.organization_memberships
            ],
        }


EMPTY_CAPABILITIES = CapabilitySet()


def build_capability_set(
    user_id: Optional[int],
    recruiter_id: Optional[int],
    memberships: Iterable[tuple[int, MembershipRole]],
    is_admin: bool,
    candidate_id: Optional[int],
) -> CapabilitySet:
    """
    Combine independently gathered lookups into a capability set.

    Args:
        user_id: Internal user id, None when the caller did not resolve
        recruiter_id: Id of the caller's active recruiter profile
        memberships: (organization_id, role) pairs; non-company roles are dropped
        is_admin: Whether the caller holds a platform_admin membership
        candidate_id: Id of the caller's linked candidate profile

    Returns:
        CapabilitySet, empty when the user did not resolve
    """
    if user_id is None:
        return EMPTY_CAPABILITIES

    grants = []
    seen = set()
    for organization_id, role in memberships:
        role = MembershipRole(role)
        if role not in COMPANY_ROLES or organization_id in seen:
            continue
        seen.add(organization_id)
        grants.append(MembershipGrant(organization_id=organization_id, role=role))

    return CapabilitySet(
        user_id=user_id,
        is_platform_admin=bool(is_admin),
        recruiter_id=recruiter_id,
        candidate_id=candidate_id,
        organization_memberships=tuple(grants),
    )


def select_listing_capability(capabilities: CapabilitySet) -> CapabilityKind:
    """
    Pick the one capability that scopes a listing.

    Priority: platform admin, recruiter, company member, candidate.
    """
    if capabilities.is_platform_admin:
        return CapabilityKind.ADMIN
    if capabilities.is_recruiter:
        return CapabilityKind.RECRUITER
    if capabilities.is_company_member:
        return CapabilityKind.COMPANY
    if capabilities.is_candidate:
        return CapabilityKind.CANDIDATE
    return CapabilityKind.NONE
