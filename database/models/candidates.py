"""
Candidate Models

Candidate profiles, the sourcing claims that protect them, and the outreach
recruiters send to them.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    BigInteger,
    DateTime,
    Integer,
    Text,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base, BigIntegerPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Enums ===================== #
class SourcerType(str, PyEnum):
    """Who sourced a candidate."""

    RECRUITER = "recruiter"  # actor id is recruiters.id
    PLATFORM = "platform"  # actor id is users.id


class OutreachEvent(str, PyEnum):
    """Engagement signals recorded on an outreach row."""

    OPENED = "opened"
    CLICKED = "clicked"
    REPLIED = "replied"
    BOUNCED = "bounced"
    UNSUBSCRIBED = "unsubscribed"


# ==================== Candidate Model ===================== #
class Candidate(Base):
    """
    Candidate profile. ``user_id`` is set when the candidate manages their own
    profile; recruiter-sourced profiles start without one.
    """

    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    user_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
        index=True,
    )

    # Contact
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), index=True)
    phone: Mapped[str | None] = mapped_column(String(50))
    location: Mapped[str | None] = mapped_column(String(255))

    # Professional
    current_title: Mapped[str | None] = mapped_column(String(255))
    current_company: Mapped[str | None] = mapped_column(String(255))

    # Links
    linkedin_url: Mapped[str | None] = mapped_column(String(500))
    github_url: Mapped[str | None] = mapped_column(String(500))
    portfolio_url: Mapped[str | None] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    def __repr__(self) -> str:
        return f"<Candidate(id={self.id}, full_name={self.full_name})>"


# ==================== Sourcing ===================== #
class CandidateSourcer(Base):
    """
    A sourcing claim on a candidate.

    Claims are never deleted. The newest claim (highest ``claim_sequence``) is
    the current one, and it protects the candidate until
    ``protection_expires_at``. Two concurrent first claims both try sequence 1
    and the unique constraint lets only one through.
    """

    __tablename__ = "candidate_sourcers"
    __table_args__ = (
        UniqueConstraint(
            "candidate_id", "claim_sequence", name="uq_candidate_sourcer_sequence"
        ),
        Index("ix_candidate_sourcers_actor", "sourcer_actor_id", "sourcer_type"),
    )

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    candidate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("candidates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    claim_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sourcer_actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    sourcer_type: Mapped[SourcerType] = mapped_column(
        SQLEnum(SourcerType, native_enum=False, length=50), nullable=False
    )
    sourced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    protection_window_days: Mapped[int] = mapped_column(Integer, nullable=False)
    protection_expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    def __repr__(self) -> str:
        return (
            f"<CandidateSourcer(candidate_id={self.candidate_id}, "
            f"actor={self.sourcer_actor_id}, seq={self.claim_sequence})>"
        )


class CandidateOutreach(Base):
    """Outreach email sent by a recruiter. Engagement fields are filled in later."""

    __tablename__ = "candidate_outreach"

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    candidate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("candidates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recruiter_actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    job_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True, index=True
    )
    email_subject: Mapped[str] = mapped_column(String(500), nullable=False)
    email_body: Mapped[str] = mapped_column(Text, nullable=False)

    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    clicked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    replied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    unsubscribed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    bounced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
