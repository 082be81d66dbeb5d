from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import ForeignKey, BigInteger, DateTime, String, Enum as SQLEnum
from database.engine import Base, BigIntegerPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


class RecruiterStatus(str, PyEnum):
    PENDING = "pending"
    ACTIVE = "active"  # only active recruiters get the recruiter capability
    SUSPENDED = "suspended"


class Recruiter(Base):
    """Independent recruiter profile linked to a user."""

    __tablename__ = "recruiters"

    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    status: Mapped[RecruiterStatus] = mapped_column(
        SQLEnum(RecruiterStatus, native_enum=False, length=50),
        nullable=False,
        default=RecruiterStatus.PENDING,
        index=True,
    )
    bio: Mapped[str | None] = mapped_column(String(1000))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    def __repr__(self) -> str:
        return f"<Recruiter(id={self.id}, status={self.status})>"
