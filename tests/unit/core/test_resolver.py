"""
Tests for capability resolution.
"""

from unittest.mock import AsyncMock

import pytest

from core.access.capabilities import EMPTY_CAPABILITIES, CapabilityKind, select_listing_capability
from core.access.identity import IdentityDirectory
from core.access.resolver import resolve_capabilities
from database.models.organizations import MembershipRole


@pytest.fixture
def directory():
    directory = AsyncMock(spec=IdentityDirectory)
    directory.find_user_id.return_value = 10
    directory.find_recruiter_by_actor.return_value = None
    directory.find_memberships.return_value = []
    directory.find_membership.return_value = None
    directory.find_candidate_by_actor.return_value = None
    directory.is_platform_admin.return_value = False
    return directory


class TestResolveCapabilities:
    async def test_missing_caller(self, directory):
        assert await resolve_capabilities(directory, None) is EMPTY_CAPABILITIES
        assert await resolve_capabilities(directory, "") is EMPTY_CAPABILITIES
        directory.find_user_id.assert_not_called()

    async def test_unknown_caller(self, directory):
        directory.find_user_id.return_value = None
        assert await resolve_capabilities(directory, "ext-ghost") is EMPTY_CAPABILITIES
        directory.find_recruiter_by_actor.assert_not_called()

    async def test_combines_lookups(self, directory):
        directory.find_recruiter_by_actor.return_value = 7
        directory.find_memberships.return_value = [(3, MembershipRole.COMPANY_ADMIN)]
        directory.find_candidate_by_actor.return_value = 4

        caps = await resolve_capabilities(directory, "ext-10")

        assert caps.user_id == 10
        assert caps.recruiter_id == 7
        assert caps.organization_ids == [3]
        assert caps.candidate_id == 4
        assert select_listing_capability(caps) is CapabilityKind.RECRUITER
        directory.find_user_id.assert_awaited_once_with("ext-10")

    async def test_org_hint_uses_single_membership(self, directory):
        directory.find_membership.return_value = (5, MembershipRole.HIRING_MANAGER)

        caps = await resolve_capabilities(directory, "ext-10", org_hint=5)

        assert caps.organization_ids == [5]
        directory.find_membership.assert_awaited_once_with(10, 5)
        directory.find_memberships.assert_not_called()

    async def test_org_hint_without_membership(self, directory):
        caps = await resolve_capabilities(directory, "ext-10", org_hint=99)
        assert caps.organization_ids == []
        assert caps.is_empty

    async def test_platform_admin(self, directory):
        directory.is_platform_admin.return_value = True
        caps = await resolve_capabilities(directory, "ext-10")
        assert select_listing_capability(caps) is CapabilityKind.ADMIN


class TestSqlIdentityDirectory:
    """Resolution against the seeded marketplace."""

    async def test_recruiter(self, marketplace):
        caps = marketplace.caps["recruiter_1"]
        assert caps.recruiter_id == marketplace.ids["recruiter_1"]
        assert not caps.is_company_member

    async def test_suspended_recruiter_has_no_capability(self, marketplace):
        assert marketplace.caps["suspended_recruiter"].is_empty

    async def test_company_member(self, marketplace):
        caps = marketplace.caps["hiring_manager"]
        assert caps.organization_ids == [marketplace.ids["acme_org"]]

    async def test_platform_admin_is_not_a_company_member(self, marketplace):
        caps = marketplace.caps["admin"]
        assert caps.is_platform_admin
        assert caps.organization_ids == []

    async def test_candidate(self, marketplace):
        assert marketplace.caps["candidate_user"].candidate_id == marketplace.ids["sam"]

    async def test_org_hint_for_other_organization(self, marketplace):
        caps = await marketplace.capabilities(
            "ext-hiring_manager", org_hint=marketplace.ids["globex_org"]
        )
        assert caps.is_empty
