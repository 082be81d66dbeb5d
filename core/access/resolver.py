"""
Access resolver.

Classifies a caller into a capability set from stored facts only. No
client-supplied role claim is ever trusted.
"""

import asyncio
import logging
from typing import List, Optional

from core.access.capabilities import (
    EMPTY_CAPABILITIES,
    CapabilitySet,
    build_capability_set,
)
from core.access.identity import IdentityDirectory
from database.models.organizations import MembershipRole

logger = logging.getLogger(__name__)


async def _memberships(
    directory: IdentityDirectory, user_id: int, org_hint: Optional[int]
) -> List[tuple[int, MembershipRole]]:
    if org_hint is None:
        return await directory.find_memberships(user_id)
    membership = await directory.find_membership(user_id, org_hint)
    return [membership] if membership else []


async def resolve_capabilities(
    directory: IdentityDirectory,
    caller_id: Optional[str],
    org_hint: Optional[int] = None,
) -> CapabilitySet:
    """
    Resolve the capabilities a caller holds.

    Args:
        directory: Identity lookups
        caller_id: Opaque caller token forwarded by the gateway
        org_hint: Organization the caller is acting for, if any

    Returns:
        CapabilitySet; empty when the caller does not map to a user
    """
    if not caller_id:
        return EMPTY_CAPABILITIES

    user_id = await directory.find_user_id(caller_id)
    if user_id is None:
        logger.info("Unknown caller, resolving to no capabilities")
        return EMPTY_CAPABILITIES

    recruiter_id, memberships, is_admin, candidate_id = await asyncio.gather(
        directory.find_recruiter_by_actor(user_id),
        _memberships(directory, user_id, org_hint),
        directory.is_platform_admin(user_id),
        directory.find_candidate_by_actor(user_id),
    )

    capabilities = build_capability_set(
        user_id=user_id,
        recruiter_id=recruiter_id,
        memberships=memberships,
        is_admin=is_admin,
        candidate_id=candidate_id,
    )
    logger.debug(
        "Resolved capabilities",
        extra={"user_id": user_id, "capabilities": capabilities.to_dict()},
    )
    return capabilities
