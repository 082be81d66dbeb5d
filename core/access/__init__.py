from core.access.capabilities import (
    CapabilityKind,
    CapabilitySet,
    EMPTY_CAPABILITIES,
    MembershipGrant,
    build_capability_set,
    select_listing_capability,
)
from core.access.identity import IdentityDirectory, SqlIdentityDirectory
from core.access.resolver import resolve_capabilities
from core.access.scoping import EntityKind, ListingFilters, Paging, scope

__all__ = [
    "CapabilityKind",
    "CapabilitySet",
    "EMPTY_CAPABILITIES",
    "MembershipGrant",
    "build_capability_set",
    "select_listing_capability",
    "IdentityDirectory",
    "SqlIdentityDirectory",
    "resolve_capabilities",
    "EntityKind",
    "ListingFilters",
    "Paging",
    "scope",
]
