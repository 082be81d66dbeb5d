"""
Identity lookups used by the access resolver.

The directory is query-only. Each lookup opens its own session so the
resolver can run them concurrently.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models.candidates import Candidate
from database.models.organizations import (
    COMPANY_ROLES,
    MembershipRole,
    OrganizationMembership,
)
from database.models.recruiters import Recruiter, RecruiterStatus
from database.models.users import User

logger = logging.getLogger(__name__)


class IdentityDirectory(ABC):
    """Read-only view of the identity store."""

    @abstractmethod
    async def find_user_id(self, external_id: str) -> Optional[int]:
        """Map a caller token to an internal user id."""

    @abstractmethod
    async def find_recruiter_by_actor(self, user_id: int) -> Optional[int]:
        """Return the id of the user's active recruiter profile."""

    @abstractmethod
    async def find_membership(
        self, user_id: int, organization_id: int
    ) -> Optional[tuple[int, MembershipRole]]:
        """Return the user's qualifying membership in one organization."""

    @abstractmethod
    async def find_memberships(self, user_id: int) -> List[tuple[int, MembershipRole]]:
        """Return all of the user's qualifying memberships."""

    @abstractmethod
    async def find_candidate_by_actor(self, user_id: int) -> Optional[int]:
        """Return the id of the candidate profile linked to the user."""

    @abstractmethod
    async def is_platform_admin(self, user_id: int) -> bool:
        """Check for a platform_admin membership."""


class SqlIdentityDirectory(IdentityDirectory):
    """IdentityDirectory backed by the relational store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_user_id(self, external_id: str) -> Optional[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(User.id).where(User.external_id == external_id)
            )
            return result.scalar_one_or_none()

    async def find_recruiter_by_actor(self, user_id: int) -> Optional[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Recruiter.id).where(
                    Recruiter.user_id == user_id,
                    Recruiter.status == RecruiterStatus.ACTIVE,
                )
            )
            return result.scalar_one_or_none()

    async def find_membership(
        self, user_id: int, organization_id: int
    ) -> Optional[tuple[int, MembershipRole]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    OrganizationMembership.organization_id,
                    OrganizationMembership.role,
                ).where(
                    OrganizationMembership.user_id == user_id,
                    OrganizationMembership.organization_id == organization_id,
                    OrganizationMembership.role.in_(COMPANY_ROLES),
                )
            )
            row = result.first()
            return (row.organization_id, row.role) if row else None

    async def find_memberships(self, user_id: int) -> List[tuple[int, MembershipRole]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    OrganizationMembership.organization_id,
                    OrganizationMembership.role,
                )
                .where(
                    OrganizationMembership.user_id == user_id,
                    OrganizationMembership.role.in_(COMPANY_ROLES),
                )
                .order_by(OrganizationMembership.organization_id)
            )
            return [(row.organization_id, row.role) for row in result.all()]

    async def find_candidate_by_actor(self, user_id: int) -> Optional[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Candidate.id).where(Candidate.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def is_platform_admin(self, user_id: int) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(OrganizationMembership.id)
                .where(
                    OrganizationMembership.user_id == user_id,
                    OrganizationMembership.role == MembershipRole.PLATFORM_ADMIN,
                )
                .limit(1)
            )
            return result.scalar_one_or_none() is not None
