"""BettingHouse model.

A bookmaker account, optionally registered to an account holder.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.defaults import random_uuid


class BettingHouse(Base):
    """BettingHouse model.

    Attributes:
        id: Random UUID string primary key
        user_id: Owning user
        name: Bookmaker name
        notes: Free-form notes
        account_holder_id: Holder the account is registered to
        created_at: Timestamp when record was created
    """

    __tablename__ = "betting_houses"
    __table_args__ = (Index("idx_betting_houses_user", "user_id"),)

    id: Mapped[str] = mapped_column(
        String,
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=random_uuid(),
    )

    user_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"))

    name: Mapped[str] = mapped_column(Text, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text)

    account_holder_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("account_holders.id")
    )

    created_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<BettingHouse(id={self.id!r}, name={self.name!r})>"
