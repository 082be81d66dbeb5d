from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    DateTime,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base, BigIntegerPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum

if TYPE_CHECKING:
    from database.models.jobs import Job


# ==================== Enums ===================== #
class MembershipRole(str, PyEnum):
    """
    Roles a user can hold inside an organization.
    """

    COMPANY_ADMIN = "company_admin"
    HIRING_MANAGER = "hiring_manager"
    PLATFORM_ADMIN = "platform_admin"
    MEMBER = "member"


# Roles that grant the company capability
COMPANY_ROLES = (MembershipRole.COMPANY_ADMIN, MembershipRole.HIRING_MANAGER)


# ==================== Organization Model ===================== #
class Organization(Base):
    """
    Identity organization. Companies belong to one; users join through
    memberships.
    """

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"


class OrganizationMembership(Base):
    """User membership in an organization with a single role."""

    __tablename__ = "organization_memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_membership_user_org"),
    )

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[MembershipRole] = mapped_column(
        SQLEnum(MembershipRole, native_enum=False, length=50),
        nullable=False,
        default=MembershipRole.MEMBER,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )


# ==================== Company Model ===================== #
class Company(Base):
    """Hiring company. Owned by exactly one identity organization."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    organization_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    website: Mapped[str | None] = mapped_column(String(500))
    industry: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    jobs: Mapped[list["Job"]] = relationship(back_populates="company")

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name})>"
