"""
Placement Models

A placement records a hire, the fee it earns and how that fee is shared
between recruiters and the platform.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    DateTime,
    Float,
    Integer,
    Text,
    Enum as SQLEnum,
)
from database.engine import Base, BigIntegerPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Placement Enums ===================== #
class PlacementState(str, PyEnum):
    """Lifecycle of a placement."""

    HIRED = "hired"
    ACTIVE = "active"  # candidate started, guarantee running
    COMPLETED = "completed"
    FAILED = "failed"


class CollaboratorRole(str, PyEnum):
    """Contribution a recruiter made to a placement."""

    SOURCER = "sourcer"
    SUBMITTER = "submitter"
    CLOSER = "closer"
    SUPPORT = "support"


# ==================== Placement Model ===================== #
class Placement(Base):
    """Hire resulting from an application. One per application."""

    __tablename__ = "placements"

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    application_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("applications.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    job_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("jobs.id"), nullable=False, index=True
    )
    candidate_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("candidates.id"), nullable=False, index=True
    )
    company_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("companies.id"), nullable=False, index=True
    )
    recruiter_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("recruiters.id"), nullable=True, index=True
    )

    # Money
    salary: Mapped[float] = mapped_column(Float, nullable=False)
    fee_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    fee_amount: Mapped[float] = mapped_column(Float, nullable=False)
    recruiter_share: Mapped[float] = mapped_column(Float, nullable=False)
    platform_share: Mapped[float] = mapped_column(Float, nullable=False)

    # Lifecycle
    state: Mapped[PlacementState] = mapped_column(
        SQLEnum(PlacementState, native_enum=False, length=50),
        nullable=False,
        default=PlacementState.HIRED,
        index=True,
    )
    hired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    guarantee_days: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    guarantee_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    failure_reason: Mapped[str | None] = mapped_column(String(1000))
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    def __repr__(self) -> str:
        return f"<Placement(id={self.id}, state={self.state})>"


class PlacementCollaborator(Base):
    """
    Recruiter sharing in a placement fee. Split percentages per placement
    never sum above 100.
    """

    __tablename__ = "placement_collaborators"

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    placement_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("placements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recruiter_actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    role: Mapped[CollaboratorRole] = mapped_column(
        SQLEnum(CollaboratorRole, native_enum=False, length=50), nullable=False
    )
    split_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    split_amount: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
