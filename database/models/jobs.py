"""
Job Models

Job postings owned by companies and the recruiter assignments that let
recruiters work them.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    DateTime,
    Integer,
    Float,
    Text,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base, BigIntegerPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum

if TYPE_CHECKING:
    from database.models.organizations import Company


# ==================== Job Enums ===================== #
class JobStatus(str, PyEnum):
    """Lifecycle of a job posting."""

    ACTIVE = "active"
    PAUSED = "paused"
    FILLED = "filled"
    CLOSED = "closed"


# ==================== Job Model ===================== #
class Job(Base):
    """
    Job posting. The owning company's organization decides which company
    members can see it and its applications.
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    company_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, native_enum=False, length=50),
        nullable=False,
        default=JobStatus.ACTIVE,
        index=True,
    )

    # Placement fee terms
    fee_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=20.0)
    guarantee_days: Mapped[int] = mapped_column(Integer, nullable=False, default=90)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    company: Mapped["Company"] = relationship(back_populates="jobs")

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, title={self.title})>"


class JobAssignment(Base):
    """Recruiter assigned to work a job."""

    __tablename__ = "job_assignments"
    __table_args__ = (
        UniqueConstraint("job_id", "recruiter_id", name="uq_job_assignment"),
    )

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    recruiter_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("recruiters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
