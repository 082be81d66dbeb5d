from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime
from database.engine import Base, BigIntegerPK
from core.utils.datetime import now
from datetime import datetime


class User(Base):
    """
    Internal identity for a caller.

    The gateway authenticates callers and forwards an opaque token, stored here
    as ``external_id``. Every other role record hangs off ``users.id``.
    """

    __tablename__: str = "users"
    id: Mapped[int] = mapped_column(
        BigIntegerPK, primary_key=True, nullable=False, autoincrement=True
    )
    external_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, external_id={self.external_id})>"
