"""
Application Models

Applications double as proposals: a recruiter proposing a candidate for a job,
or a candidate applying directly. Every change lands in the append-only audit
log.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    BigInteger,
    DateTime,
    Text,
    JSON,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base, BigIntegerPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any


# ==================== Application Enums ===================== #
class ApplicationStage(str, PyEnum):
    """Workflow stage of an application."""

    # Entry points
    RECRUITER_PROPOSED = "recruiter_proposed"
    DRAFT = "draft"

    # Review
    AI_REVIEW = "ai_review"
    SCREEN = "screen"
    SUBMITTED = "submitted"
    INTERVIEW = "interview"
    OFFER = "offer"

    # Terminal
    HIRED = "hired"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class AuditAction(str, PyEnum):
    """Actions written to the application audit log."""

    CREATED = "created"
    STAGE_CHANGED = "stage_changed"
    ACCEPTED = "accepted"
    HIRED = "hired"


# ==================== Application Model ===================== #
class Application(Base):
    """
    Candidate submitted to a job, either by a recruiter or by themselves.
    Company members only see applications to their own organization's jobs.
    """

    __tablename__ = "applications"
    __table_args__ = (
        Index("ix_applications_job_stage", "job_id", "stage"),
    )

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    candidate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("candidates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Null for direct applications
    recruiter_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("recruiters.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    stage: Mapped[ApplicationStage] = mapped_column(
        SQLEnum(ApplicationStage, native_enum=False, length=50),
        nullable=False,
        default=ApplicationStage.DRAFT,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text)

    # Company acceptance unmasks the candidate for company viewers
    accepted_by_company: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Deadlines
    action_due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    def __repr__(self) -> str:
        return f"<Application(id={self.id}, stage={self.stage})>"


class ApplicationAuditLog(Base):
    """Append-only record of actions taken on an application."""

    __tablename__ = "application_audit_log"

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    application_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(AuditAction, native_enum=False, length=50), nullable=False
    )
    performed_by_actor_id: Mapped[int | None] = mapped_column(BigInteger)
    performed_by_role: Mapped[str | None] = mapped_column(String(50))
    company_id: Mapped[int | None] = mapped_column(BigInteger)

    old_value: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    new_value: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    # "metadata" is reserved on declarative classes
    audit_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )
